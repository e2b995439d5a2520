#!/usr/bin/env python3
"""
SNP Lookup Pipeline

Runs one lookup end to end:

    INIT -> DETECTING -> SCHEDULING -> MERGING -> AGGREGATING -> RENDERING -> DONE

The reference naming convention is detected once, before scheduling, and
attached to the immutable run configuration handed to every chunk worker.
Per-chunk backend failures are absorbed by the scheduler; every other
failure ends the run.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from common.lookup_config import LookupConfig, delimiter_name
from .backends import create_backend
from .errors import ConfigurationError, ReportWriteError
from .input_parser import read_input_records
from .logging_config import RunMetricsLogger
from .models import ReportEvent, ReportSummary, ResultBlock
from .reference_format import detect_reference_format
from .report import (ReportContext, build_statistics, render_report,
                     summarize_events, write_report, write_statistics_json)
from .result_merger import merge_report_events, merge_result_blocks, write_output
from .scheduler import ChunkScheduler

logger = logging.getLogger(__name__)


@dataclass
class LookupRunResult:
    """Outcome of a completed run."""
    summary: ReportSummary
    events: List[ReportEvent]
    output_lines: int
    degraded_chunks: int
    report_written: bool
    config: LookupConfig


class SnpLookupPipeline:
    """
    Main lookup engine that ties input parsing, the chunk scheduler, the
    result merger and the report together.
    """

    def __init__(self,
                 input_lines: Sequence[str],
                 reference_vcf: Optional[str],
                 config: LookupConfig,
                 input_name: str = "-",
                 output_path: Optional[Path] = None,
                 stats_output: Optional[Path] = None,
                 backend=None):
        """
        Initialize the pipeline.

        Args:
            input_lines: Raw input lines (already read, delimiter resolved in config)
            reference_vcf: Path to the reference VCF (ignored when backend is given)
            config: Validated run configuration
            input_name: Input file name printed in the report header
            output_path: Output file (None for stdout)
            stats_output: Optional JSON statistics destination
            backend: Pre-built LocusQueryBackend (default: built from config.backend)
        """
        self.input_lines = input_lines
        self.reference_vcf = reference_vcf
        self.config = config
        self.input_name = input_name
        self.output_path = Path(output_path) if output_path else None
        self.stats_output = Path(stats_output) if stats_output else None
        self.backend = backend
        self.metrics = RunMetricsLogger()

    def _log_configuration(self) -> None:
        config = self.config
        logger.info("Starting getSNPrs with the following parameters:")
        logger.info(f"  Input file: {self.input_name}")
        logger.info(f"  Output: {self.output_path or 'stdout'}")
        logger.info(f"  Reference: {self.backend.describe()}")
        logger.info(f"  Backend: {config.backend}")
        logger.info(f"  Threads: {config.threads}")
        logger.info(f"  Input delimiter: {delimiter_name(config.input_delimiter)}")
        logger.info(f"  Output delimiter: {delimiter_name(config.output_delimiter)}")
        logger.info(f"  Split size: {config.chunk_size}")
        logger.info(f"  INFO fields: {','.join(config.info_fields) or 'none'}")
        logger.info(f"  Report file: {config.report_path or 'none'}")
        logger.info(f"  Generate report: {config.generate_report}")

    def validate_info_fields(self) -> None:
        """
        Check the requested INFO fields against the reference header.

        Raises:
            ConfigurationError: if any requested field is not declared
        """
        declared = self.backend.declared_info_fields()
        if declared is None or not self.config.info_fields:
            return

        missing = [name for name in self.config.info_fields if name not in declared]
        if missing:
            raise ConfigurationError(
                f"INFO fields not declared in the reference header: {', '.join(missing)}"
            )

    def _render_report(self, summary: ReportSummary, events: Sequence[ReportEvent],
                       context: ReportContext) -> bool:
        report_text = render_report(summary, events, context, delimiter=self.config.output_delimiter)
        try:
            write_report(report_text, self.config.report_path)
        except ReportWriteError as e:
            logger.warning(f"{e}; lookup output is unaffected")
            return False
        return True

    def run(self) -> LookupRunResult:
        """
        Run the lookup.

        Returns:
            LookupRunResult for the completed run

        Raises:
            ConfigurationError / ReferenceUnavailableError: before any query
            OSError: if the output stream cannot be written
        """
        run_start = time.time()

        # INIT
        self.metrics.log_stage("INIT", "START")
        if self.backend is None:
            self.backend = create_backend(self.config.backend, self.reference_vcf)
        self.validate_info_fields()
        self._log_configuration()

        records = read_input_records(self.input_lines, self.config.input_delimiter)
        logger.info(f"Processing {len(records):,} SNPs...")
        self.metrics.log_metric("input_records", len(records), "counter")
        self.metrics.log_stage("INIT", "COMPLETE")

        # DETECTING
        self.metrics.log_stage("DETECTING", "START")
        reference_format = detect_reference_format(self.backend)
        self.config = self.config.with_reference_format(reference_format)
        self.metrics.log_stage("DETECTING", "COMPLETE")

        # SCHEDULING
        self.metrics.log_stage("SCHEDULING", "START")
        scheduler = ChunkScheduler(self.backend, self.config)
        schedule_start = time.time()
        blocks: List[ResultBlock] = scheduler.schedule(records)
        self.metrics.log_performance("chunk_lookup", time.time() - schedule_start, len(records))
        self.metrics.log_stage("SCHEDULING", "COMPLETE")
        self.metrics.log_resource_usage("after_lookup")

        # MERGING
        self.metrics.log_stage("MERGING", "START")
        logger.info("Combining results...")
        output_lines = write_output(merge_result_blocks(blocks), self.output_path)
        self.metrics.log_stage("MERGING", "COMPLETE")

        # AGGREGATING
        self.metrics.log_stage("AGGREGATING", "START")
        events = merge_report_events(blocks)
        summary = summarize_events(events)
        degraded = scheduler.stats['chunks_degraded']
        logger.info(f"Found {summary.found:,} of {summary.total:,} SNPs "
                    f"({summary.success_rate_percent}% success rate)")
        self.metrics.log_stage("AGGREGATING", "COMPLETE")

        # RENDERING
        context = ReportContext(
            input_file=self.input_name,
            reference=self.backend.describe(),
            build=self.config.build,
            backend=self.config.backend,
            threads=self.config.threads,
            chunk_size=self.config.chunk_size,
            degraded_chunks=degraded,
        )

        report_written = False
        if self.config.generate_report and self.config.report_path:
            self.metrics.log_stage("RENDERING", "START")
            logger.info("Generating report...")
            report_written = self._render_report(summary, events, context)
            self.metrics.log_stage("RENDERING", "COMPLETE")

        if self.stats_output:
            statistics = build_statistics(summary, events, context)
            statistics['metrics'] = self.metrics.get_metrics_summary()
            write_statistics_json(statistics, self.stats_output)

        self.metrics.log_performance("total_run", time.time() - run_start, len(records))
        logger.info("✓ Processing completed")

        return LookupRunResult(
            summary=summary,
            events=events,
            output_lines=output_lines,
            degraded_chunks=degraded,
            report_written=report_written,
            config=self.config,
        )
