"""
SNP lookup utilities package.

This package provides the parallel chunked lookup engine behind getSNPrs:
chromosome-name normalization, reference backends, bounded-concurrency
chunk scheduling, order-preserving result merging and report generation.

Modules:
    models: Record, locus, result and report data types
    errors: Error taxonomy (configuration, reference, backend, report)
    chromosome_utils: Mapping between input, reference and output chromosome names
    input_parser: Input reading, delimiter detection and line validation
    backends: LocusQueryBackend contract with bcftools and pysam implementations
    reference_format: One-shot detection of the reference naming convention
    chunk_worker: Deduplicated batch lookup of one chunk
    scheduler: Bounded thread pool over chunks with per-chunk degradation
    result_merger: Ordered concatenation of chunk results and output writing
    report: Summary statistics, report rendering and JSON statistics
    logging_config: Logging setup and run metrics
    lookup_pipeline: End-to-end run orchestration

Example:
    Basic lookup workflow:

    >>> from common.lookup_config import build_lookup_config
    >>> from snp_utils.input_parser import load_input_lines
    >>> from snp_utils.lookup_pipeline import SnpLookupPipeline
    >>>
    >>> lines, delimiter = load_input_lines('snps.txt', 'auto')
    >>> config = build_lookup_config(threads=4, info_fields='AC,AF',
    ...                              input_delimiter=delimiter,
    ...                              report_path='snps_getSNPrs_report.txt')
    >>> result = SnpLookupPipeline(lines, 'reference.vcf.gz', config,
    ...                            input_name='snps.txt',
    ...                            output_path='results.txt').run()
    >>> print(result.summary.success_rate_percent)

    Chromosome name mapping:

    >>> from snp_utils.chromosome_utils import normalize_chromosome, format_output_chromosome
    >>> from snp_utils.models import ReferenceFormat
    >>> canonical = normalize_chromosome('23', ReferenceFormat.PREFIXED)   # 'chrX'
    >>> format_output_chromosome(canonical, '23')
    '23'
"""

__version__ = "1.1.0"

# Import key classes and functions for convenience
from .chromosome_utils import (
    format_output_chromosome,
    has_chr_prefix,
    normalize_chromosome,
    strip_chr_prefix,
)
from .errors import (
    BackendError,
    ConfigurationError,
    ReferenceUnavailableError,
    ReportWriteError,
    SnpLookupError,
)
from .models import (
    CanonicalLocus,
    LookupStatus,
    QueryResult,
    RawRecord,
    ReferenceFormat,
    ReportEvent,
    ReportSummary,
    ResultBlock,
)
