#!/usr/bin/env python3
"""
Reference Variant Store Backends

This module provides the LocusQueryBackend contract used by the chunk
workers, and two implementations of it:

- BcftoolsQueryBackend: batched lookups through `bcftools query`, one
  subprocess per chunk, driven by a chunk-local regions file
- PysamVariantBackend: in-process lookups through pysam.VariantFile

Contract:
    Given a set of (chromosome, position) loci spelled in the store's own
    naming convention, return zero or more QueryResult rows. Unmatched loci
    are simply absent. Any failure to answer raises BackendError; a
    partially read response is never returned.

FEATURES:
- Indexed (.tbi/.csi) region lookups with an unindexed fallback
- Requested INFO fields in request order, '.' when absent
- Probe queries and raw-dump access for reference format detection
- Chunk-local temporary files removed on every exit path
"""

import logging
import os
import shutil
import subprocess
import tempfile
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

import pysam

from common.lookup_config import MISSING_VALUE
from .chromosome_utils import chromosome_sort_key
from .errors import BackendError, ConfigurationError, ReferenceUnavailableError
from .models import CanonicalLocus, QueryResult

logger = logging.getLogger(__name__)

INDEX_SUFFIXES = (".tbi", ".csi")
BCFTOOLS_TIMEOUT_SECONDS = 3600


def find_index_file(reference_vcf: Path) -> Optional[Path]:
    """
    Locate a tabix or CSI index next to a reference VCF.

    Args:
        reference_vcf: Path to the (bgzipped) reference VCF

    Returns:
        Path to the index file, or None if the reference is unindexed
    """
    for suffix in INDEX_SUFFIXES:
        candidate = Path(str(reference_vcf) + suffix)
        if candidate.exists():
            return candidate
    return None


def check_reference_file(reference_vcf: Path) -> None:
    """Raise ReferenceUnavailableError unless the reference is a readable file."""
    if not reference_vcf.exists():
        raise ReferenceUnavailableError(f"Reference VCF file does not exist: {reference_vcf}")
    if not reference_vcf.is_file():
        raise ReferenceUnavailableError(f"Reference VCF is not a regular file: {reference_vcf}")
    if not os.access(reference_vcf, os.R_OK):
        raise ReferenceUnavailableError(f"Cannot read reference VCF: {reference_vcf}")


def read_reference_header(reference_vcf: Path) -> Tuple[Optional[FrozenSet[str]], FrozenSet[str]]:
    """
    Read contig and INFO declarations from the reference VCF header.

    Returns:
        Tuple of (contig names or None when the header declares none,
        declared INFO field IDs)

    Raises:
        ReferenceUnavailableError: if pysam cannot parse the file
    """
    try:
        with pysam.VariantFile(str(reference_vcf)) as vcf:
            contigs = frozenset(vcf.header.contigs.keys())
            info_ids = frozenset(vcf.header.info.keys())
    except (OSError, ValueError) as e:
        raise ReferenceUnavailableError(f"Cannot open reference VCF {reference_vcf}: {e}") from e

    return (contigs or None), info_ids


def sort_loci(loci: Iterable[CanonicalLocus]) -> List[CanonicalLocus]:
    return sorted(loci, key=lambda locus: (chromosome_sort_key(locus.chromosome), locus.position))


def format_info_value(value) -> str:
    """
    Render a pysam INFO value the way `bcftools query` prints it.

    Example:
        >>> format_info_value((0.25, 0.5))
        '0.25,0.5'
        >>> format_info_value(None)
        '.'
    """
    if value is None:
        return MISSING_VALUE
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (tuple, list)):
        return ",".join(MISSING_VALUE if item is None else str(item) for item in value)
    return str(value)


class LocusQueryBackend(ABC):
    """Abstract reference store answering batched point queries."""

    name = "abstract"

    @abstractmethod
    def query(self, loci: Iterable[CanonicalLocus], info_fields: Sequence[str]) -> List[QueryResult]:
        """Return the records found at the given loci (unmatched loci are absent)."""

    @abstractmethod
    def probe(self, chromosome: str, start: int, end: int) -> bool:
        """Return True if any record exists on chromosome:start-end."""

    @abstractmethod
    def first_record_chromosome(self) -> Optional[str]:
        """Return the CHROM field of the first data row, or None for an empty store."""

    def declared_info_fields(self) -> Optional[FrozenSet[str]]:
        """INFO field IDs declared by the store, or None when unknown."""
        return None

    def describe(self) -> str:
        return self.name


class BcftoolsQueryBackend(LocusQueryBackend):
    """
    Reference lookups through `bcftools query`.

    Each batched query writes its loci to a regions file inside a private
    temporary directory and runs one bcftools process over it. Indexed
    references use `-R` (random access); unindexed references fall back to
    `-T` (streaming scan), which is slower but answers the same question.
    """

    name = "bcftools"

    def __init__(self, reference_vcf, bcftools_path: Optional[str] = None,
                 timeout: int = BCFTOOLS_TIMEOUT_SECONDS):
        """
        Initialize the bcftools backend.

        Args:
            reference_vcf: Path to the reference VCF (bgzipped for indexed access)
            bcftools_path: Explicit path to bcftools (default: discovered in PATH)
            timeout: Per-query timeout in seconds
        """
        self.reference_vcf = Path(reference_vcf)
        self.timeout = timeout

        check_reference_file(self.reference_vcf)

        self.bcftools = bcftools_path or shutil.which("bcftools")
        if not self.bcftools:
            raise ConfigurationError(
                "bcftools not found in system PATH. Install it (e.g. 'conda install -c bioconda bcftools') "
                "or use the pysam backend"
            )

        self.index_file = find_index_file(self.reference_vcf)
        if self.index_file is None:
            logger.warning(f"No index (.tbi/.csi) found for {self.reference_vcf}; "
                           "falling back to unindexed scans, lookups will be slower")
        else:
            logger.debug(f"Using reference index: {self.index_file}")

        self._contigs, self._info_ids = read_reference_header(self.reference_vcf)

    @property
    def indexed(self) -> bool:
        return self.index_file is not None

    def describe(self) -> str:
        return str(self.reference_vcf)

    def declared_info_fields(self) -> Optional[FrozenSet[str]]:
        return self._info_ids

    @staticmethod
    def build_query_format(info_fields: Sequence[str]) -> str:
        """
        Build the bcftools query format string.

        Example:
            >>> BcftoolsQueryBackend.build_query_format(['AC', 'AF'])
            '%CHROM\\t%POS\\t%ID\\t%REF\\t%ALT\\t%INFO/AC\\t%INFO/AF\\n'
        """
        columns = ["%CHROM", "%POS", "%ID", "%REF", "%ALT"]
        columns.extend(f"%INFO/{field}" for field in info_fields)
        return "\t".join(columns) + "\n"

    def _run(self, cmd: List[str]) -> subprocess.CompletedProcess:
        logger.debug(f"Command: {' '.join(cmd)}")
        start = time.time()
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise BackendError(f"bcftools query timed out after {self.timeout}s",
                               command=" ".join(cmd)) from e
        except OSError as e:
            raise BackendError(f"Could not run bcftools: {e}", command=" ".join(cmd)) from e

        if result.returncode != 0:
            raise BackendError(
                f"bcftools query failed with return code {result.returncode}: {result.stderr.strip()}",
                command=" ".join(cmd),
                stderr=result.stderr,
            )

        logger.debug(f"bcftools query completed in {time.time() - start:.2f}s")
        return result

    def _first_output_line(self, cmd: List[str]) -> Optional[str]:
        """Run a command and return its first stdout line without reading the rest."""
        logger.debug(f"Command: {' '.join(cmd)}")
        try:
            with subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL,
                                  text=True) as proc:
                line = proc.stdout.readline()
                proc.kill()
        except OSError as e:
            logger.debug(f"bcftools probe could not start: {e}")
            return None
        line = line.strip()
        return line or None

    def parse_query_output(self, stdout: str, info_fields: Sequence[str]) -> List[QueryResult]:
        """
        Parse `bcftools query` output into QueryResult rows.

        Raises:
            BackendError: on any row with an unexpected column count or
                position, so a half-parsed response is never trusted
        """
        expected_columns = 5 + len(info_fields)
        results = []

        for line_number, line in enumerate(stdout.splitlines(), 1):
            if not line:
                continue
            fields = line.split("\t")
            if len(fields) != expected_columns:
                raise BackendError(
                    f"Unexpected bcftools output at line {line_number}: "
                    f"expected {expected_columns} columns, got {len(fields)}"
                )
            chrom, pos, variant_id, ref, alt = fields[:5]
            if not (pos.isascii() and pos.isdigit()):
                raise BackendError(f"Unexpected bcftools output at line {line_number}: bad POS '{pos}'")

            results.append(QueryResult(
                locus=CanonicalLocus(chrom, int(pos)),
                id=variant_id or MISSING_VALUE,
                ref=ref or MISSING_VALUE,
                alt=alt or MISSING_VALUE,
                info=tuple(value or MISSING_VALUE for value in fields[5:]),
            ))

        return results

    def query(self, loci: Iterable[CanonicalLocus], info_fields: Sequence[str]) -> List[QueryResult]:
        wanted = sort_loci(set(loci))
        if self._contigs is not None:
            # Loci on undeclared contigs cannot match; bcftools may reject them outright
            wanted = [locus for locus in wanted if locus.chromosome in self._contigs]
        if not wanted:
            return []

        with tempfile.TemporaryDirectory(prefix="getsnprs_chunk_") as temp_dir:
            regions_file = Path(temp_dir) / "loci.tsv"
            with open(regions_file, "w") as fh:
                for locus in wanted:
                    fh.write(f"{locus.chromosome}\t{locus.position}\n")

            cmd = [
                self.bcftools, "query",
                "-R" if self.indexed else "-T", str(regions_file),
                "-f", self.build_query_format(info_fields),
                str(self.reference_vcf),
            ]
            result = self._run(cmd)

        return self.parse_query_output(result.stdout, info_fields)

    def probe(self, chromosome: str, start: int, end: int) -> bool:
        if not self.indexed:
            logger.debug("Reference is unindexed; skipping region probe")
            return False
        if self._contigs is not None and chromosome not in self._contigs:
            return False
        cmd = [self.bcftools, "query", "-r", f"{chromosome}:{start}-{end}",
               "-f", "%CHROM\n", str(self.reference_vcf)]
        return self._first_output_line(cmd) is not None

    def first_record_chromosome(self) -> Optional[str]:
        cmd = [self.bcftools, "query", "-f", "%CHROM\n", str(self.reference_vcf)]
        return self._first_output_line(cmd)


class PysamVariantBackend(LocusQueryBackend):
    """
    Reference lookups through pysam.VariantFile.

    A fresh file handle is opened for every batched query, so concurrent
    chunk workers never share htslib state.
    """

    name = "pysam"

    def __init__(self, reference_vcf):
        self.reference_vcf = Path(reference_vcf)
        check_reference_file(self.reference_vcf)

        self.index_file = find_index_file(self.reference_vcf)
        if self.index_file is None:
            logger.warning(f"No index (.tbi/.csi) found for {self.reference_vcf}; "
                           "falling back to sequential scans, lookups will be slower")

        self._contigs, self._info_ids = read_reference_header(self.reference_vcf)

    @property
    def indexed(self) -> bool:
        return self.index_file is not None

    def describe(self) -> str:
        return str(self.reference_vcf)

    def declared_info_fields(self) -> Optional[FrozenSet[str]]:
        return self._info_ids

    def _open(self):
        try:
            return pysam.VariantFile(str(self.reference_vcf))
        except (OSError, ValueError) as e:
            raise BackendError(f"Cannot open reference VCF {self.reference_vcf}: {e}") from e

    @staticmethod
    def _to_result(record, info_fields: Sequence[str]) -> QueryResult:
        return QueryResult(
            locus=CanonicalLocus(record.chrom, record.pos),
            id=record.id or MISSING_VALUE,
            ref=record.ref or MISSING_VALUE,
            alt=",".join(record.alts) if record.alts else MISSING_VALUE,
            info=tuple(format_info_value(record.info.get(field)) for field in info_fields),
        )

    def query(self, loci: Iterable[CanonicalLocus], info_fields: Sequence[str]) -> List[QueryResult]:
        wanted = set(loci)
        if not wanted:
            return []

        results = []
        vcf = self._open()
        try:
            if self.indexed:
                for locus in sort_loci(wanted):
                    if self._contigs is not None and locus.chromosome not in self._contigs:
                        continue
                    try:
                        records = vcf.fetch(locus.chromosome, locus.position - 1, locus.position)
                    except ValueError:
                        # contig absent from the index
                        continue
                    for record in records:
                        if record.pos == locus.position:
                            results.append(self._to_result(record, info_fields))
            else:
                for record in vcf:
                    if CanonicalLocus(record.chrom, record.pos) in wanted:
                        results.append(self._to_result(record, info_fields))
        except OSError as e:
            raise BackendError(f"Error reading reference VCF {self.reference_vcf}: {e}") from e
        finally:
            vcf.close()

        return results

    def probe(self, chromosome: str, start: int, end: int) -> bool:
        if not self.indexed:
            return False
        vcf = self._open()
        try:
            next(iter(vcf.fetch(chromosome, start - 1, end)))
            return True
        except (StopIteration, ValueError):
            return False
        finally:
            vcf.close()

    def first_record_chromosome(self) -> Optional[str]:
        vcf = self._open()
        try:
            for record in vcf:
                return record.chrom
            return None
        finally:
            vcf.close()


BACKENDS = {
    BcftoolsQueryBackend.name: BcftoolsQueryBackend,
    PysamVariantBackend.name: PysamVariantBackend,
}


def create_backend(name: str, reference_vcf) -> LocusQueryBackend:
    """
    Create a backend by name.

    Args:
        name: 'bcftools' or 'pysam'
        reference_vcf: Path to the reference VCF

    Raises:
        ConfigurationError: unknown backend name or missing bcftools
        ReferenceUnavailableError: reference missing or unreadable
    """
    if name not in BACKENDS:
        raise ConfigurationError(f"Unknown backend '{name}'. Choose from: {', '.join(BACKENDS)}")

    backend = BACKENDS[name](reference_vcf)
    logger.info(f"✓ {name} backend ready for {reference_vcf}")
    return backend
