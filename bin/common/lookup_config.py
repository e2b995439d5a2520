#!/usr/bin/env python3
"""
Shared Lookup Configuration Module

Central configuration for the SNP lookup engine used by both:
- snp_utils (chunked lookup engine, backends and report)
- get_snp_rs.py (command-line entry point)

This module holds the getSNPrs run constants and the resolved, immutable
run configuration (LookupConfig) that is built once before scheduling and
handed to every chunk worker.

Usage:
    from common.lookup_config import build_lookup_config

    config = build_lookup_config(
        threads=8,
        chunk_size=500,
        info_fields="AC,AF",
        input_delimiter="tab",
    )
"""

import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Tuple

from snp_utils.errors import ConfigurationError
from snp_utils.models import ReferenceFormat

TOOL_NAME = "getSNPrs"
TOOL_VERSION = "1.1.0"

# ============================================================================
# RUN DEFAULTS
# ============================================================================

DEFAULT_THREADS = 4
DEFAULT_CHUNK_SIZE = 1000
DEFAULT_BUILD = "hg19"
DEFAULT_BACKEND = "bcftools"

SUPPORTED_BUILDS = ("hg19",)
SUPPORTED_BACKENDS = ("bcftools", "pysam")

# ============================================================================
# DELIMITERS
# ============================================================================
#
# Input and output delimiters are chosen by name on the command line.
# "auto" on input means "count tabs vs spaces in a sample of lines";
# "auto" on output means "reuse the input delimiter".
#

DELIMITER_CHARS = {
    "tab": "\t",
    "space": " ",
}
DELIMITER_CHOICES = ("tab", "space", "auto")
DELIMITER_SAMPLE_LINES = 10

# ============================================================================
# VALUE CONVENTIONS
# ============================================================================

MISSING_VALUE = "."
COMMENT_PREFIX = "#"
INFO_FIELDS_PATTERN = re.compile(r"^[A-Za-z0-9_,]+$")

# Default report file name: <input stem>_getSNPrs_report.txt
REPORT_SUFFIX = "_getSNPrs_report.txt"


@dataclass(frozen=True)
class LookupConfig:
    """
    Resolved run configuration shared by every chunk worker.

    Instances are frozen: the detected reference naming convention is
    attached with ``with_reference_format`` which returns a new value.

    Attributes:
        threads: Maximum number of chunk workers running concurrently
        chunk_size: Maximum number of records per chunk
        info_fields: Requested INFO field names, in output order
        input_delimiter: Character separating input columns
        output_delimiter: Character separating output columns
        generate_report: Whether the report document is written
        report_path: Destination of the report document
        build: Genome build the reference was built against
        backend: Name of the LocusQueryBackend implementation
        reference_format: Detected backend chromosome naming (None until detected)
    """
    threads: int = DEFAULT_THREADS
    chunk_size: int = DEFAULT_CHUNK_SIZE
    info_fields: Tuple[str, ...] = field(default_factory=tuple)
    input_delimiter: str = "\t"
    output_delimiter: str = "\t"
    generate_report: bool = True
    report_path: Optional[Path] = None
    build: str = DEFAULT_BUILD
    backend: str = DEFAULT_BACKEND
    reference_format: Optional[ReferenceFormat] = None

    @property
    def missing_columns(self) -> Tuple[str, ...]:
        """Placeholder columns for a locus the backend did not report."""
        return (MISSING_VALUE,) * (3 + len(self.info_fields))

    def with_reference_format(self, reference_format: ReferenceFormat) -> "LookupConfig":
        return replace(self, reference_format=reference_format)


def parse_positive_int(value, name: str) -> int:
    """
    Parse a strictly positive integer option.

    Raises:
        ConfigurationError: if the value is not a positive integer
    """
    text = str(value).strip()
    if not (text.isascii() and text.isdigit()) or int(text) < 1:
        raise ConfigurationError(f"{name} must be a positive integer (got '{value}')")
    return int(text)


def parse_info_fields(info_fields: Optional[str]) -> Tuple[str, ...]:
    """
    Parse the comma-delimited INFO field list.

    Args:
        info_fields: e.g. "AC,AF,DP"; None or "" requests no INFO fields

    Returns:
        Tuple of field names in request order

    Example:
        >>> parse_info_fields("AC,AF")
        ('AC', 'AF')
        >>> parse_info_fields(None)
        ()
    """
    if not info_fields:
        return ()

    if not INFO_FIELDS_PATTERN.match(info_fields):
        raise ConfigurationError(
            "INFO fields must be comma-separated alphanumeric field names "
            f"(got '{info_fields}')"
        )

    names = tuple(info_fields.split(","))
    if any(not name for name in names):
        raise ConfigurationError(f"INFO field list contains an empty name: '{info_fields}'")
    return names


def resolve_delimiter(name: str, option: str = "delimiter") -> str:
    """Map a delimiter name ('tab' or 'space') to its character."""
    if name not in DELIMITER_CHARS:
        raise ConfigurationError(f"Invalid {option} '{name}'. Use 'tab' or 'space'")
    return DELIMITER_CHARS[name]


def delimiter_name(char: str) -> str:
    for name, value in DELIMITER_CHARS.items():
        if value == char:
            return name
    return repr(char)


def default_report_path(input_path) -> Path:
    """
    Build the default report file name from the input file name.

    Example:
        >>> default_report_path("data/snps.txt")
        PosixPath('snps_getSNPrs_report.txt')
    """
    stem = Path(str(input_path)).name
    if stem.endswith(".txt"):
        stem = stem[: -len(".txt")]
    if stem in ("-", ""):
        stem = "stdin"
    return Path(f"{stem}{REPORT_SUFFIX}")


def build_lookup_config(threads=DEFAULT_THREADS,
                        chunk_size=DEFAULT_CHUNK_SIZE,
                        info_fields: Optional[str] = None,
                        input_delimiter: str = "tab",
                        output_delimiter: str = "auto",
                        generate_report: bool = True,
                        report_path=None,
                        build: str = DEFAULT_BUILD,
                        backend: str = DEFAULT_BACKEND) -> LookupConfig:
    """
    Validate raw option values and build the immutable run configuration.

    The input delimiter must already be resolved ('tab' or 'space'); input
    auto-detection needs the input file and happens in input_parser.

    Raises:
        ConfigurationError: on any invalid option, before processing starts
    """
    if build not in SUPPORTED_BUILDS:
        raise ConfigurationError(
            f"Only {', '.join(SUPPORTED_BUILDS)} build is currently supported (got '{build}')"
        )

    if backend not in SUPPORTED_BACKENDS:
        raise ConfigurationError(
            f"Unknown backend '{backend}'. Choose from: {', '.join(SUPPORTED_BACKENDS)}"
        )

    for option, value in (("input delimiter", input_delimiter), ("output delimiter", output_delimiter)):
        if value not in DELIMITER_CHOICES:
            raise ConfigurationError(f"Invalid {option} '{value}'. Use 'tab', 'space' or 'auto'")

    in_char = resolve_delimiter(input_delimiter, "input delimiter")
    out_char = in_char if output_delimiter == "auto" else resolve_delimiter(output_delimiter, "output delimiter")

    return LookupConfig(
        threads=parse_positive_int(threads, "Thread count"),
        chunk_size=parse_positive_int(chunk_size, "Split size"),
        info_fields=parse_info_fields(info_fields),
        input_delimiter=in_char,
        output_delimiter=out_char,
        generate_report=generate_report,
        report_path=Path(report_path) if report_path else None,
        build=build,
        backend=backend,
    )
