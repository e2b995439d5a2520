"""
Common shared configuration for the SNP lookup tool.

This package contains the run constants and the resolved run
configuration shared by the snp_utils engine and the get_snp_rs.py
command-line entry point.
"""

from .lookup_config import (
    # Defaults
    DEFAULT_BACKEND,
    DEFAULT_BUILD,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_THREADS,

    # Conventions
    MISSING_VALUE,
    SUPPORTED_BACKENDS,
    SUPPORTED_BUILDS,
    TOOL_NAME,
    TOOL_VERSION,

    # Configuration
    LookupConfig,
    build_lookup_config,
    default_report_path,
    parse_info_fields,
)

__all__ = [
    "DEFAULT_BACKEND",
    "DEFAULT_BUILD",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_THREADS",
    "MISSING_VALUE",
    "SUPPORTED_BACKENDS",
    "SUPPORTED_BUILDS",
    "TOOL_NAME",
    "TOOL_VERSION",
    "LookupConfig",
    "build_lookup_config",
    "default_report_path",
    "parse_info_fields",
]
