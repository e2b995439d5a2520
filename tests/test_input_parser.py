import gzip
import io

import pytest

from snp_utils.errors import ConfigurationError
from snp_utils.input_parser import (detect_delimiter, load_input_lines, parse_record_line,
                                    read_input_records)


def test_detect_delimiter_prefers_tab_only_when_it_dominates():
    assert detect_delimiter(["chr1\t998371\n", "chr2\t954\n"]) == "tab"
    assert detect_delimiter(["chr1 998371\n", "chr2 954\n"]) == "space"
    # tie goes to space
    assert detect_delimiter(["chr1\t1 extra\n"]) == "space"
    assert detect_delimiter([]) == "space"


def test_detect_delimiter_samples_first_ten_lines_only():
    lines = ["chr1\t1\n"] * 10 + ["chr1 1 2 3 4 5 6 7 8 9 10 11 12\n"] * 5
    assert detect_delimiter(lines) == "tab"


@pytest.mark.parametrize("line, expected", [
    ("chr1\t998371\n", ("chr1", 998371)),
    ("chr1\t998371\r\n", ("chr1", 998371)),
    ("chr1\t\t998371\textra\n", ("chr1", 998371)),
    ("\n", None),
    ("# comment\t1\n", None),
    ("#CHROM\tPOS\n", None),
    ("chr1\n", None),
    ("chr1\tabc\n", None),
    ("chr1\t-5\n", None),
    ("chr1\t1.5\n", None),
])
def test_parse_record_line_tab(line, expected):
    assert parse_record_line(line, "\t") == expected


def test_parse_record_line_collapses_repeated_spaces():
    assert parse_record_line("2    954\n", " ") == ("2", 954)


def test_read_input_records_numbers_only_valid_lines():
    lines = ["# header\n", "chr1\t100\n", "\n", "bad\tline\n", "X\t200\n", "23\t300\n"]
    records = read_input_records(lines, "\t")

    assert [(r.original_chrom_token, r.position, r.original_index) for r in records] == [
        ("chr1", 100, 0),
        ("X", 200, 1),
        ("23", 300, 2),
    ]


def test_load_input_lines_auto_detects_delimiter(tmp_path):
    path = tmp_path / "snps.txt"
    path.write_text("chr1 998371\nchr2 954\n")

    lines, delimiter = load_input_lines(path, "auto")

    assert delimiter == "space"
    assert len(lines) == 2


def test_load_input_lines_reads_gzip(tmp_path):
    path = tmp_path / "snps.txt.gz"
    with gzip.open(path, "wt") as fh:
        fh.write("chr1\t998371\n")

    lines, delimiter = load_input_lines(path, "tab")

    assert delimiter == "tab"
    assert lines == ["chr1\t998371\n"]


def test_load_input_lines_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_input_lines(tmp_path / "absent.txt", "auto")


def test_load_input_lines_from_stdin_leaves_it_open(monkeypatch):
    stdin_buffer = io.BytesIO(b"chr1\t998371\r\nX\t5\n")
    monkeypatch.setattr("sys.stdin", io.TextIOWrapper(stdin_buffer, encoding="utf-8"))

    lines, delimiter = load_input_lines("-", "auto")

    assert delimiter == "tab"
    assert [parse_record_line(line, "\t") for line in lines] == [("chr1", 998371), ("X", 5)]
    assert not stdin_buffer.closed
