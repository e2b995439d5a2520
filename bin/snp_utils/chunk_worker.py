#!/usr/bin/env python3
"""
Chunk Worker

Processes one contiguous chunk of input records against the reference
backend:

1. Normalize every record's chromosome to the backend's convention
2. Collapse repeated loci into one deduplicated batch
3. Issue a single batched query for the chunk
4. Walk the records in their original order, emitting one output line and
   one ReportEvent per record

A record whose locus the backend did not report is written with '.'
placeholders for ID, REF, ALT and every requested INFO field.
"""

import logging
from typing import Dict, List, Sequence

from common.lookup_config import LookupConfig
from .chromosome_utils import format_output_chromosome, normalize_chromosome
from .models import (CanonicalLocus, LookupStatus, QueryResult, RawRecord,
                     ReportEvent, ResultBlock)

logger = logging.getLogger(__name__)


def to_canonical_locus(record: RawRecord, config: LookupConfig) -> CanonicalLocus:
    return CanonicalLocus(
        normalize_chromosome(record.original_chrom_token, config.reference_format),
        record.position,
    )


def build_lookup(results: Sequence[QueryResult], wanted) -> Dict[CanonicalLocus, QueryResult]:
    """
    Index backend rows by locus.

    Rows for loci that were not requested are ignored, and when the backend
    returns several rows for one locus the first one wins.
    """
    lookup: Dict[CanonicalLocus, QueryResult] = {}
    for result in results:
        if result.locus in wanted and result.locus not in lookup:
            lookup[result.locus] = result
    return lookup


def format_found_line(output_chrom: str, record: RawRecord, result: QueryResult,
                      config: LookupConfig) -> str:
    columns = [output_chrom, str(record.position), result.id, result.ref, result.alt]
    columns.extend(result.info)
    return config.output_delimiter.join(columns)


def format_missing_line(output_chrom: str, record: RawRecord, config: LookupConfig) -> str:
    columns = [output_chrom, str(record.position)]
    columns.extend(config.missing_columns)
    return config.output_delimiter.join(columns)


def not_found_block(chunk_index: int, records: Sequence[RawRecord], config: LookupConfig,
                    degraded: bool = False) -> ResultBlock:
    """
    Build a block reporting every record of the chunk as NOT_FOUND.

    Used for chunks whose backend query failed.
    """
    block = ResultBlock(chunk_index=chunk_index, degraded=degraded)
    for record in records:
        locus = to_canonical_locus(record, config)
        output_chrom = format_output_chromosome(locus.chromosome, record.original_chrom_token)
        block.output_lines.append(format_missing_line(output_chrom, record, config))
        block.report_events.append(ReportEvent(LookupStatus.NOT_FOUND, output_chrom, record.position))
    return block


def process_chunk(chunk_index: int, records: Sequence[RawRecord], backend,
                  config: LookupConfig) -> ResultBlock:
    """
    Look up one chunk of records.

    Args:
        chunk_index: Sequence number of the chunk
        records: Chunk records, in original input order
        backend: LocusQueryBackend to query
        config: Resolved run configuration (reference_format must be set)

    Returns:
        ResultBlock with lines and events in the same order as ``records``

    Raises:
        BackendError: if the batched query fails; the caller decides how to
            degrade the chunk
    """
    loci: List[CanonicalLocus] = [to_canonical_locus(record, config) for record in records]

    # dict preserves first-seen order
    distinct_loci = list(dict.fromkeys(loci))
    logger.debug(f"Chunk {chunk_index}: {len(records)} records, {len(distinct_loci)} distinct loci")

    results = backend.query(distinct_loci, config.info_fields)
    lookup = build_lookup(results, set(distinct_loci))

    block = ResultBlock(chunk_index=chunk_index)
    for record, locus in zip(records, loci):
        output_chrom = format_output_chromosome(locus.chromosome, record.original_chrom_token)
        result = lookup.get(locus)
        if result is not None:
            block.output_lines.append(format_found_line(output_chrom, record, result, config))
            block.report_events.append(ReportEvent(LookupStatus.FOUND, output_chrom, record.position))
        else:
            block.output_lines.append(format_missing_line(output_chrom, record, config))
            block.report_events.append(ReportEvent(LookupStatus.NOT_FOUND, output_chrom, record.position))

    logger.debug(f"Chunk {chunk_index}: {len(lookup)} of {len(distinct_loci)} distinct loci found")
    return block
