#!/usr/bin/env python3
"""
Reference Format Detection

Determines once per run whether the reference store names chromosomes with
a 'chr' prefix (chr1) or without (1).

Detection order:
1. Probe a well-known locus window with the prefixed spelling
2. Probe the same window with the bare spelling
3. Inspect the CHROM field of the first data row of a raw dump
4. Fall back to BARE, logged as a low-confidence detection
"""

import logging

from .chromosome_utils import CHR_PREFIX, has_chr_prefix
from .errors import BackendError
from .models import ReferenceFormat

logger = logging.getLogger(__name__)

PROBE_CHROMOSOME = "1"
PROBE_START = 1
PROBE_END = 1_000_000


def detect_reference_format(backend) -> ReferenceFormat:
    """
    Detect the chromosome naming convention of a reference backend.

    Args:
        backend: LocusQueryBackend to probe

    Returns:
        ReferenceFormat.PREFIXED or ReferenceFormat.BARE. Never raises on an
        inconclusive or failing probe; BARE is returned instead.
    """
    logger.info("Detecting reference chromosome naming convention...")

    try:
        if backend.probe(f"{CHR_PREFIX}{PROBE_CHROMOSOME}", PROBE_START, PROBE_END):
            logger.info(f"✓ Reference uses prefixed chromosome names "
                        f"(probe {CHR_PREFIX}{PROBE_CHROMOSOME}:{PROBE_START}-{PROBE_END})")
            return ReferenceFormat.PREFIXED

        if backend.probe(PROBE_CHROMOSOME, PROBE_START, PROBE_END):
            logger.info(f"✓ Reference uses bare chromosome names "
                        f"(probe {PROBE_CHROMOSOME}:{PROBE_START}-{PROBE_END})")
            return ReferenceFormat.BARE

        first_chrom = backend.first_record_chromosome()
    except BackendError as e:
        logger.warning(f"Reference format probe failed: {e}")
        first_chrom = None

    if first_chrom:
        detected = ReferenceFormat.PREFIXED if has_chr_prefix(first_chrom) else ReferenceFormat.BARE
        logger.info(f"✓ Reference format {detected.value} inferred from first record ({first_chrom})")
        return detected

    logger.warning("Could not determine reference chromosome naming (low confidence); "
                   "assuming bare names (1, 2, ..., X, Y, MT)")
    return ReferenceFormat.BARE
