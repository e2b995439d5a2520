#!/usr/bin/env python3
"""
Chromosome Naming Utilities

This module maps chromosome tokens between the three spellings the lookup
engine deals with:

- raw: whatever the input file contains ('chr1', '1', '23', 'chrX', ...)
- canonical: the reference store's own convention, with or without the
  'chr' prefix depending on the detected ReferenceFormat, and numeric sex
  and mitochondrial chromosomes resolved to X/Y/MT
- output: the canonical name rewritten to mirror the raw token's format,
  so 'chr1' comes back as 'chr1', '23' as '23' and 'X' as 'X'

All functions are pure: they depend only on their arguments.

Key Features:
- Prefix stripping and re-attachment
- Numeric sex chromosome mapping (23 -> X, 24 -> Y, 25 -> MT)
- Output formatting that mirrors the input token
"""

import re
from typing import Optional

from .models import ReferenceFormat

CHR_PREFIX = "chr"
RECOGNIZED_PREFIXES = ("chr", "Chr", "CHR")

# Exact, case-sensitive matches only
NUMERIC_TO_NAMED = {
    "23": "X",
    "24": "Y",
    "25": "MT",
}
NAMED_TO_NUMERIC = {named: numeric for numeric, named in NUMERIC_TO_NAMED.items()}

BARE_CHROMOSOME_RE = re.compile(r"^(?:[0-9]+|X|Y|M|MT)$")


def split_chr_prefix(token: str):
    """
    Split a chromosome token into (prefix, bare name).

    Args:
        token (str): Chromosome token (e.g., 'chr1', 'Chr22', '1')

    Returns:
        tuple: (prefix or '', remainder)

    Example:
        >>> split_chr_prefix('chrX')
        ('chr', 'X')
        >>> split_chr_prefix('22')
        ('', '22')
    """
    for prefix in RECOGNIZED_PREFIXES:
        if token.startswith(prefix) and len(token) > len(prefix):
            return prefix, token[len(prefix):]
    return "", token


def has_chr_prefix(token: str) -> bool:
    """Return True if the token starts with a recognized 'chr' prefix."""
    return bool(split_chr_prefix(token)[0])


def strip_chr_prefix(token: str) -> str:
    """
    Remove a recognized 'chr' prefix from a chromosome token.

    Example:
        >>> strip_chr_prefix('chr1')
        '1'
        >>> strip_chr_prefix('MT')
        'MT'
    """
    return split_chr_prefix(token)[1]


def is_recognized_chromosome(token: str) -> bool:
    """
    Check whether a token is a chromosome name the normalizer understands.

    A token is recognized when it carries a 'chr' prefix, or when it is a
    bare chromosome name (digits, X, Y, M or MT). Anything else is treated
    as malformed and passed through unchanged.
    """
    prefix, bare = split_chr_prefix(token)
    return bool(prefix) or bool(BARE_CHROMOSOME_RE.match(bare))


def normalize_chromosome(token: str, reference_format: Optional[ReferenceFormat]) -> str:
    """
    Convert a raw chromosome token to the reference store's convention.

    Args:
        token (str): Raw chromosome token from the input file
        reference_format (ReferenceFormat): Detected naming convention of the
            reference store; None is treated as BARE

    Returns:
        str: Canonical chromosome name

    Example:
        >>> normalize_chromosome('23', ReferenceFormat.PREFIXED)
        'chrX'
        >>> normalize_chromosome('chr1', ReferenceFormat.BARE)
        '1'
        >>> normalize_chromosome('scaffold_7', ReferenceFormat.PREFIXED)
        'scaffold_7'
    """
    if not is_recognized_chromosome(token):
        return token

    bare = strip_chr_prefix(token)
    bare = NUMERIC_TO_NAMED.get(bare, bare)

    if reference_format is ReferenceFormat.PREFIXED:
        return f"{CHR_PREFIX}{bare}"
    return bare


def chromosome_sort_key(chrom: str):
    """
    Get sort key for chromosome to enable karyotypic ordering.

    Args:
        chrom (str): Chromosome name in any convention

    Returns:
        tuple: Sort key (type, value) where type 0=autosome, 1=sex, 2=mito,
            3=anything else
    """
    bare = strip_chr_prefix(chrom)
    bare = NUMERIC_TO_NAMED.get(bare, bare)

    if bare.isascii() and bare.isdigit():
        return (0, int(bare), "")
    if bare == "X":
        return (1, 0, "")
    if bare == "Y":
        return (1, 1, "")
    if bare in ("M", "MT"):
        return (2, 0, "")
    return (3, 0, bare)


def format_output_chromosome(canonical: str, original_token: str) -> str:
    """
    Rewrite a canonical chromosome name to mirror the original input token.

    The prefix of the original token (if any) is re-used verbatim, and
    X/Y/MT are turned back into 23/24/25 only when the original token used
    the numeric spelling.

    Args:
        canonical (str): Chromosome name in the reference store's convention
        original_token (str): Token exactly as it appeared in the input

    Returns:
        str: Chromosome name for the output line

    Example:
        >>> format_output_chromosome('chrX', '23')
        '23'
        >>> format_output_chromosome('chrX', 'X')
        'X'
        >>> format_output_chromosome('1', 'chr1')
        'chr1'
    """
    if not is_recognized_chromosome(original_token):
        return original_token

    original_prefix, original_bare = split_chr_prefix(original_token)
    bare = strip_chr_prefix(canonical)

    if bare in NAMED_TO_NUMERIC and original_bare == NAMED_TO_NUMERIC[bare]:
        bare = original_bare

    return f"{original_prefix}{bare}"
