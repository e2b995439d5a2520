#!/usr/bin/env python3
"""
getSNPrs - Fast SNP Lookup

Looks up chromosome/position pairs in a reference VCF and reports the
variant ID, REF and ALT alleles (plus any requested INFO fields) for each,
in input order. Input is split into chunks that are queried in parallel.

FEATURES:
- Accepts chr-prefixed, bare and numeric (23/24/25) chromosome names
- Output chromosome names mirror the input's own format
- Tab/space delimiter auto-detection
- bcftools or pysam reference backends, indexed or unindexed
- Plain-text summary report and optional JSON statistics
- Chunks whose reference query fails are reported as not found, the run
  carries on
"""

import argparse
import logging
import sys
from pathlib import Path

from common.lookup_config import (DEFAULT_BACKEND, DEFAULT_BUILD, DEFAULT_CHUNK_SIZE,
                                  DEFAULT_THREADS, DELIMITER_CHOICES, SUPPORTED_BACKENDS,
                                  TOOL_VERSION, build_lookup_config, default_report_path)
from snp_utils.errors import ConfigurationError, ReferenceUnavailableError
from snp_utils.input_parser import load_input_lines
from snp_utils.logging_config import setup_logging
from snp_utils.lookup_pipeline import SnpLookupPipeline

logger = logging.getLogger("get_snp_rs")


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        prog="get-snp-rs",
        description="A fast SNP lookup tool that searches for SNPs in reference VCF files.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
INPUT FORMAT:
  Chromosome and position separated by space or tab:
      chr1 998371
      2    954
  X, Y and MT are supported; 23, 24 and 25 are read as X, Y and MT.

OUTPUT FORMAT:
  CHROM POS ID REF ALT [INFO_FIELDS]
  Missing SNPs have "." for ID, REF, ALT and every INFO field.
  The chromosome format in the output matches the input format.

Examples:
  # Basic usage
  get-snp-rs -i snps.txt -r reference.vcf.gz

  # Include additional INFO fields, 8 threads, output to a file
  get-snp-rs -i snps.txt -r reference.vcf.gz --info "AC,AF,DP" -t 8 -o results.txt

  # Custom report file / no report
  get-snp-rs -i snps.txt -r reference.vcf.gz --report snp_report.txt
  get-snp-rs -i snps.txt -r reference.vcf.gz --no-report
        """
    )

    parser.add_argument('-i', '--input', required=True, metavar='FILE',
                        help="Input file with chromosome and position ('-' for stdin, .gz accepted)")
    parser.add_argument('-o', '--output', metavar='FILE',
                        help='Output file (default: stdout)')
    parser.add_argument('-r', '--reference', required=True, metavar='VCF_FILE',
                        help='Reference VCF file (bgzipped and indexed for fast lookups)')
    parser.add_argument('-t', '--threads', default=DEFAULT_THREADS, metavar='NUM',
                        help=f'Number of threads for parallel processing (default: {DEFAULT_THREADS})')
    parser.add_argument('-b', '--build', default=DEFAULT_BUILD, metavar='BUILD',
                        help=f'Genome build (default: {DEFAULT_BUILD}, only hg19 supported)')
    parser.add_argument('-d', '--delimiter', default='auto', choices=DELIMITER_CHOICES,
                        help="Input delimiter (default: auto)")
    parser.add_argument('-D', '--output-delimiter', default='auto', choices=DELIMITER_CHOICES,
                        help="Output delimiter (default: auto, same as input)")
    parser.add_argument('-s', '--split-size', default=DEFAULT_CHUNK_SIZE, metavar='NUM',
                        help=f'Number of SNPs per chunk for parallel processing (default: {DEFAULT_CHUNK_SIZE})')
    parser.add_argument('-I', '--info', metavar='FIELDS',
                        help='Additional INFO fields to include (comma-separated, e.g. "AC,AF,DP")')
    parser.add_argument('-R', '--report', metavar='FILE',
                        help='Report file (default: <input>_getSNPrs_report.txt)')
    parser.add_argument('--no-report', action='store_true',
                        help='Disable report generation')
    parser.add_argument('--backend', default=DEFAULT_BACKEND, choices=SUPPORTED_BACKENDS,
                        help=f'Reference query backend (default: {DEFAULT_BACKEND})')
    parser.add_argument('--stats-output', metavar='JSON_FILE',
                        help='Write summary statistics and run metrics as JSON (optional)')
    parser.add_argument('--log-dir', metavar='DIRECTORY',
                        help='Directory for a detailed log file (optional)')

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument('-q', '--quiet', action='store_true',
                           help='Suppress informational messages')
    verbosity.add_argument('-v', '--verbose', action='store_true',
                           help='Enable verbose (debug) logging')

    parser.add_argument('--version', action='version', version=f'%(prog)s {TOOL_VERSION}')

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point; returns the process exit code."""
    args = parse_arguments(argv)
    setup_logging(verbose=args.verbose, quiet=args.quiet,
                  log_dir=Path(args.log_dir) if args.log_dir else None)

    try:
        if args.input != '-' and not Path(args.input).exists():
            raise ConfigurationError(f"Input file does not exist: {args.input}")

        input_lines, input_delimiter = load_input_lines(args.input, args.delimiter)

        report_path = None
        if not args.no_report:
            report_path = Path(args.report) if args.report else default_report_path(args.input)
            logger.info(f"Report will be saved to: {report_path}")

        config = build_lookup_config(
            threads=args.threads,
            chunk_size=args.split_size,
            info_fields=args.info,
            input_delimiter=input_delimiter,
            output_delimiter=args.output_delimiter,
            generate_report=not args.no_report,
            report_path=report_path,
            build=args.build,
            backend=args.backend,
        )

        pipeline = SnpLookupPipeline(
            input_lines=input_lines,
            reference_vcf=args.reference,
            config=config,
            input_name=args.input,
            output_path=Path(args.output) if args.output else None,
            stats_output=Path(args.stats_output) if args.stats_output else None,
        )
        result = pipeline.run()

        if result.degraded_chunks:
            logger.warning(f"{result.degraded_chunks} chunks could not be queried and were reported as not found")
        return 0

    except (ConfigurationError, ReferenceUnavailableError) as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.error("getSNPrs interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"getSNPrs failed: {e}")
        if args.verbose:
            import traceback
            logger.error(f"Traceback: {traceback.format_exc()}")
        return 1


def main_entry():
    sys.exit(main())


if __name__ == '__main__':
    main_entry()
