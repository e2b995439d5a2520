#!/usr/bin/env python3
"""
Lookup Report Aggregation and Rendering

This module turns the per-record ReportEvents emitted by the chunk workers
into summary statistics and the plain-text report document.

Report layout:
- header (timestamp, input file, reference)
- summary statistics
- per-record status detail, in input order
- warnings (only when some records were not found)
- missing loci listing (only when some records were not found)
- tool information footer

Functions:
    summarize_events: Compute the ReportSummary
    chromosome_breakdown: Per-chromosome counts as a pandas DataFrame
    render_report: Render the report document text
    write_report: Write the report (raises ReportWriteError on failure)
    write_statistics_json: Machine-readable summary for downstream tooling
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from common.lookup_config import TOOL_NAME, TOOL_VERSION
from .chromosome_utils import chromosome_sort_key
from .errors import ReportWriteError
from .models import ReportEvent, ReportSummary

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%a %b %d %H:%M:%S %Y"

MISSING_CAUSES = (
    "SNP position does not exist in the reference",
    "Different genome build (currently using {build})",
    "Chromosome naming mismatch",
    "Position outside of covered regions",
)


@dataclass(frozen=True)
class ReportContext:
    """Run details printed in the report header and footer."""
    input_file: str
    reference: str
    build: str = "hg19"
    backend: str = "bcftools"
    threads: int = 1
    chunk_size: int = 1000
    degraded_chunks: int = 0


def summarize_events(events: Sequence[ReportEvent]) -> ReportSummary:
    """
    Compute summary statistics for a run.

    The success rate is floor(found * 100 / total), or 0 for an empty run.

    Example:
        >>> summary = summarize_events(events)   # 3 events, 1 found
        >>> summary.success_rate_percent
        33
    """
    total = len(events)
    found = sum(1 for event in events if event.found)
    success_rate = (found * 100) // total if total > 0 else 0
    return ReportSummary(total=total, found=found, not_found=total - found,
                         success_rate_percent=success_rate)


def chromosome_breakdown(events: Sequence[ReportEvent]) -> pd.DataFrame:
    """
    Count queried, found and not-found records per output chromosome.

    Returns:
        DataFrame with columns chromosome, queried, found, not_found in
        karyotypic order
    """
    columns = ["chromosome", "queried", "found", "not_found"]
    if not events:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame(
        {"chromosome": [event.output_chromosome for event in events],
         "found": [event.found for event in events]}
    )
    grouped = (
        df.groupby("chromosome", sort=False)["found"]
        .agg(queried="size", found="sum")
        .astype(int)
    )
    grouped["not_found"] = grouped["queried"] - grouped["found"]

    order = sorted(grouped.index, key=chromosome_sort_key)
    return grouped.loc[order].reset_index()[columns]


def render_report(summary: ReportSummary, events: Sequence[ReportEvent], context: ReportContext,
                  delimiter: str = "\t", now: Optional[datetime] = None) -> str:
    """
    Render the report document.

    Args:
        summary: Summary statistics for the run
        events: All report events, in input order
        context: Run details for the header and footer
        delimiter: Column delimiter for the detail and missing tables
        now: Timestamp to print (default: current time)

    Returns:
        str: Report text
    """
    stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    d = delimiter

    lines: List[str] = [
        f"# {TOOL_NAME} Analysis Report",
        f"# Generated on: {stamp}",
        f"# Input file: {context.input_file}",
        f"# Reference: {context.reference}",
        "",
        "## Summary Statistics",
        f"Total SNPs queried: {summary.total}",
        f"SNPs found: {summary.found}",
        f"SNPs not found: {summary.not_found}",
        f"Success rate: {summary.success_rate_percent}%",
        "",
        "## Detailed Results",
        f"# Status{d}Chromosome{d}Position",
    ]
    lines.extend(f"{event.status.value}{d}{event.output_chromosome}{d}{event.position}" for event in events)

    if summary.not_found > 0:
        lines.extend([
            "",
            "## Warnings",
            f"⚠️  {summary.not_found} SNPs were not found in the reference dataset.",
            "",
            "Possible reasons for missing SNPs:",
        ])
        lines.extend(f"- {cause.format(build=context.build)}" for cause in MISSING_CAUSES)
        if context.degraded_chunks:
            lines.append(f"- Reference query failure ({context.degraded_chunks} chunks reported as not found)")

        lines.extend([
            "",
            "## Missing SNPs",
            f"# Chromosome{d}Position",
        ])
        lines.extend(f"{event.output_chromosome}{d}{event.position}" for event in events if not event.found)

    lines.extend([
        "",
        "## Tool Information",
        f"{TOOL_NAME} version: {TOOL_VERSION}",
        f"Processing completed: {stamp}",
        f"Threads used: {context.threads}",
        f"Chunk size: {context.chunk_size}",
        f"Backend: {context.backend}",
    ])

    return "\n".join(lines) + "\n"


def write_report(report_text: str, report_path: Path) -> None:
    """
    Write the report document.

    Raises:
        ReportWriteError: if the destination cannot be written; callers
            treat this as a warning only
    """
    try:
        Path(report_path).write_text(report_text, encoding="utf-8")
    except OSError as e:
        raise ReportWriteError(f"Cannot write report to {report_path}: {e}") from e

    logger.info(f"✓ Report generated: {report_path}")


def build_statistics(summary: ReportSummary, events: Sequence[ReportEvent],
                     context: ReportContext) -> Dict[str, Any]:
    breakdown = chromosome_breakdown(events)
    return {
        'summary': {
            'total': summary.total,
            'found': summary.found,
            'not_found': summary.not_found,
            'success_rate_percent': summary.success_rate_percent,
        },
        'by_chromosome': json.loads(breakdown.to_json(orient="records")),
        'run': {
            'input_file': context.input_file,
            'reference': context.reference,
            'build': context.build,
            'backend': context.backend,
            'threads': context.threads,
            'chunk_size': context.chunk_size,
            'degraded_chunks': context.degraded_chunks,
        },
    }


def write_statistics_json(statistics: Dict[str, Any], output_file: Path) -> bool:
    """Save statistics as JSON; failures are logged as warnings."""
    try:
        with open(output_file, "w") as f:
            json.dump(statistics, f, indent=2, default=str)
    except OSError as e:
        logger.warning(f"Failed to save statistics to {output_file}: {e}")
        return False

    logger.info(f"Detailed statistics saved to: {output_file}")
    return True
