import shutil

import pytest

from snp_utils.backends import (BcftoolsQueryBackend, PysamVariantBackend, create_backend,
                                find_index_file, format_info_value, sort_loci)
from snp_utils.errors import BackendError, ConfigurationError, ReferenceUnavailableError
from snp_utils.models import CanonicalLocus

requires_bcftools = pytest.mark.skipif(shutil.which("bcftools") is None,
                                       reason="bcftools not installed")

LOCI = [
    CanonicalLocus("chr1", 998371),
    CanonicalLocus("chr1", 998395),
    CanonicalLocus("chrX", 123456),
    CanonicalLocus("chr1", 5),
    CanonicalLocus("chr7", 100),
]


def by_locus(results):
    found = {}
    for result in results:
        found.setdefault(result.locus, result)
    return found


@pytest.mark.parametrize("value, expected", [
    (None, "."),
    (3, "3"),
    (True, "1"),
    ((10,), "10"),
    ((0.25, 0.5), "0.25,0.5"),
    ((1, None), "1,."),
    ("text", "text"),
])
def test_format_info_value(value, expected):
    assert format_info_value(value) == expected


def test_find_index_file(reference_vcf, unindexed_reference_vcf):
    assert find_index_file(reference_vcf) is not None
    assert find_index_file(unindexed_reference_vcf) is None


def test_missing_reference_raises(tmp_path):
    with pytest.raises(ReferenceUnavailableError):
        PysamVariantBackend(tmp_path / "absent.vcf.gz")


def test_unparseable_reference_raises(tmp_path):
    path = tmp_path / "broken.vcf"
    path.write_text("this is not a vcf\n")

    with pytest.raises(ReferenceUnavailableError):
        PysamVariantBackend(path)


def test_create_backend_rejects_unknown_name(reference_vcf):
    with pytest.raises(ConfigurationError):
        create_backend("tabix", reference_vcf)


class TestPysamBackend:

    def test_indexed_query(self, reference_vcf):
        backend = PysamVariantBackend(reference_vcf)

        results = backend.query(LOCI, ("AC", "AF"))
        found = by_locus(results)

        assert backend.indexed
        assert set(found) == {LOCI[0], LOCI[1], LOCI[2]}
        assert found[LOCI[0]].id == "rs7526076"
        assert (found[LOCI[0]].ref, found[LOCI[0]].alt) == ("A", "G")
        assert found[LOCI[0]].info == ("10", "0.5")
        assert found[LOCI[1]].id == "rs6503"
        assert found[LOCI[2]].info == ("2", ".")

    def test_unindexed_query_matches_indexed(self, reference_vcf, unindexed_reference_vcf):
        indexed = by_locus(PysamVariantBackend(reference_vcf).query(LOCI, ("AC",)))
        scanned = by_locus(PysamVariantBackend(unindexed_reference_vcf).query(LOCI, ("AC",)))

        assert scanned == indexed

    def test_probe(self, reference_vcf, bare_reference_vcf):
        prefixed = PysamVariantBackend(reference_vcf)
        bare = PysamVariantBackend(bare_reference_vcf)

        assert prefixed.probe("chr1", 1, 1_000_000)
        assert not prefixed.probe("1", 1, 1_000_000)
        assert not prefixed.probe("chr1", 1, 1000)
        assert bare.probe("1", 1, 1_000_000)
        assert not bare.probe("chr1", 1, 1_000_000)

    def test_first_record_chromosome(self, reference_vcf, bare_reference_vcf):
        assert PysamVariantBackend(reference_vcf).first_record_chromosome() == "chr1"
        assert PysamVariantBackend(bare_reference_vcf).first_record_chromosome() == "1"

    def test_declared_info_fields(self, reference_vcf):
        assert PysamVariantBackend(reference_vcf).declared_info_fields() == {"AC", "AF"}

    def test_empty_query(self, reference_vcf):
        assert PysamVariantBackend(reference_vcf).query([], ()) == []


class TestBcftoolsOutputParsing:

    @pytest.fixture
    def backend(self, reference_vcf):
        # parsing and command failures need no working bcftools binary
        return BcftoolsQueryBackend(reference_vcf, bcftools_path="/nonexistent/bcftools")

    def test_build_query_format(self):
        assert BcftoolsQueryBackend.build_query_format([]) == "%CHROM\t%POS\t%ID\t%REF\t%ALT\n"
        assert BcftoolsQueryBackend.build_query_format(["AC"]).endswith("\t%INFO/AC\n")

    def test_parse_query_output(self, backend):
        results = backend.parse_query_output("chr1\t998371\trs7526076\tA\tG\t10\n", ("AC",))

        assert len(results) == 1
        assert results[0].locus == CanonicalLocus("chr1", 998371)
        assert results[0].info == ("10",)

    def test_parse_rejects_wrong_column_count(self, backend):
        with pytest.raises(BackendError):
            backend.parse_query_output("chr1\t998371\trs1\tA\n", ())

    @pytest.mark.parametrize("pos", ["abc", "²", "-1"])
    def test_parse_rejects_bad_position(self, backend, pos):
        with pytest.raises(BackendError):
            backend.parse_query_output(f"chr1\t{pos}\trs1\tA\tG\n", ())

    def test_unrunnable_binary_raises_backend_error(self, backend):
        with pytest.raises(BackendError):
            backend.query([CanonicalLocus("chr1", 998371)], ())

    def test_loci_on_undeclared_contigs_are_not_queried(self, backend):
        assert backend.query([CanonicalLocus("chr7", 100)], ()) == []


@requires_bcftools
class TestBcftoolsBackend:

    def test_indexed_query(self, reference_vcf):
        backend = BcftoolsQueryBackend(reference_vcf)

        found = by_locus(backend.query(LOCI, ("AC", "AF")))

        assert set(found) == {LOCI[0], LOCI[1], LOCI[2]}
        assert found[LOCI[0]].id == "rs7526076"
        assert found[LOCI[0]].info == ("10", "0.5")
        assert found[LOCI[2]].info == ("2", ".")

    def test_unindexed_query(self, unindexed_reference_vcf):
        backend = BcftoolsQueryBackend(unindexed_reference_vcf)

        found = by_locus(backend.query(LOCI, ()))

        assert not backend.indexed
        assert set(found) == {LOCI[0], LOCI[1], LOCI[2]}

    def test_probe(self, reference_vcf):
        backend = BcftoolsQueryBackend(reference_vcf)

        assert backend.probe("chr1", 1, 1_000_000)
        assert not backend.probe("1", 1, 1_000_000)
        assert backend.first_record_chromosome() == "chr1"


def test_sort_loci_tolerates_non_ascii_digit_chromosomes():
    loci = [CanonicalLocus("chr²", 5), CanonicalLocus("chr2", 9), CanonicalLocus("chr1", 7)]

    assert sort_loci(loci) == [loci[2], loci[1], loci[0]]


def test_pysam_query_with_unusual_chromosome_keeps_real_hits(reference_vcf):
    backend = PysamVariantBackend(reference_vcf)

    found = by_locus(backend.query([LOCI[0], CanonicalLocus("chr²", 5)], ()))

    assert set(found) == {LOCI[0]}
