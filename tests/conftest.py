import threading
import time
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import pysam
import pytest

from common.lookup_config import LookupConfig
from snp_utils.backends import LocusQueryBackend
from snp_utils.errors import BackendError
from snp_utils.models import CanonicalLocus, QueryResult, ReferenceFormat


class FakeBackend(LocusQueryBackend):
    """In-memory backend that records every query it receives."""

    name = "fake"

    def __init__(self, results: Sequence[QueryResult] = (), fail_positions: Iterable[int] = (),
                 delay: float = 0.0, info_ids=None):
        self.results = list(results)
        self.fail_positions = set(fail_positions)
        self.delay = delay
        self.info_ids = info_ids
        self.queries: List[List[CanonicalLocus]] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def query(self, loci, info_fields):
        loci = list(loci)
        with self._lock:
            self.queries.append(loci)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if any(locus.position in self.fail_positions for locus in loci):
                raise BackendError("simulated backend failure")
            wanted = set(loci)
            return [result for result in self.results if result.locus in wanted]
        finally:
            with self._lock:
                self.active -= 1

    def probe(self, chromosome, start, end):
        return any(r.locus.chromosome == chromosome and start <= r.locus.position <= end
                   for r in self.results)

    def first_record_chromosome(self) -> Optional[str]:
        return self.results[0].locus.chromosome if self.results else None

    def declared_info_fields(self):
        return self.info_ids

    def describe(self):
        return "fake-reference.vcf.gz"


def make_result(chrom, pos, variant_id, ref="A", alt="G", info=()):
    return QueryResult(CanonicalLocus(chrom, pos), variant_id, ref, alt, tuple(info))


@pytest.fixture
def prefixed_config():
    return LookupConfig(threads=2, chunk_size=2, reference_format=ReferenceFormat.PREFIXED)


VCF_HEADER = """##fileformat=VCFv4.2
##contig=<ID={p}1,length=249250621>
##contig=<ID={p}X,length=155270560>
##INFO=<ID=AC,Number=A,Type=Integer,Description="Allele count">
##INFO=<ID=AF,Number=A,Type=Float,Description="Allele frequency">
#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO
"""

VCF_RECORDS = [
    ("1", 998371, "rs7526076", "A", "G", "AC=10;AF=0.5"),
    ("1", 998395, "rs6503", "G", "A", "AC=3;AF=0.25"),
    ("1", 998395, "rs6503b", "G", "T", "AC=1"),
    ("X", 123456, "rs111", "C", "T", "AC=2"),
]


def write_reference_vcf(directory: Path, prefixed: bool = True, indexed: bool = True) -> Path:
    """Write the test reference VCF; bgzip + tabix index it when indexed."""
    prefix = "chr" if prefixed else ""
    path = directory / ("ref_chr.vcf" if prefixed else "ref_bare.vcf")
    lines = [VCF_HEADER.format(p=prefix)]
    for chrom, pos, variant_id, ref, alt, info in VCF_RECORDS:
        lines.append(f"{prefix}{chrom}\t{pos}\t{variant_id}\t{ref}\t{alt}\t.\tPASS\t{info}\n")
    path.write_text("".join(lines))

    if not indexed:
        return path
    return Path(pysam.tabix_index(str(path), preset="vcf", force=True))


@pytest.fixture
def reference_vcf(tmp_path):
    return write_reference_vcf(tmp_path, prefixed=True, indexed=True)


@pytest.fixture
def bare_reference_vcf(tmp_path):
    return write_reference_vcf(tmp_path, prefixed=False, indexed=True)


@pytest.fixture
def unindexed_reference_vcf(tmp_path):
    return write_reference_vcf(tmp_path, prefixed=True, indexed=False)
