"""
Input parsing for chromosome/position files.

Functions:
    open_input: Open a plain, gzip-compressed or '-' (stdin) input
    detect_delimiter: Pick 'tab' or 'space' from a sample of lines
    parse_record_line: Validate one line and split it into (chrom, position)
    read_input_records: Read all valid lines as RawRecords, in input order

Lines that are blank, start with '#', or have a non-integer position are
dropped silently; they never receive an original_index and are excluded
from every count downstream.
"""
import gzip
import io
import logging
import sys
from contextlib import contextmanager
from itertools import islice
from typing import Iterable, List, Optional, Tuple

from common.lookup_config import COMMENT_PREFIX, DELIMITER_SAMPLE_LINES
from .errors import ConfigurationError
from .models import RawRecord

logger = logging.getLogger(__name__)


@contextmanager
def open_input(path):
    """
    Open an input file for text reading.

    '-' means standard input; a '.gz' suffix means gzip-compressed text.
    Standard input is left open when the context exits.
    """
    path = str(path)
    if path == "-":
        fh = io.TextIOWrapper(sys.stdin.buffer, encoding="utf-8", newline=None)
        try:
            yield fh
        finally:
            fh.detach()
        return

    try:
        if path.endswith(".gz"):
            fh = gzip.open(path, "rt", encoding="utf-8")
        else:
            fh = open(path, "r", encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot open input file {path}: {e}") from e

    with fh:
        yield fh


def detect_delimiter(lines: Iterable[str]) -> str:
    """
    Detect the column delimiter from a sample of lines.

    Tabs win only if they strictly outnumber spaces; ties go to space.

    Args:
        lines: Sample of raw input lines (the first few lines of the file)

    Returns:
        str: 'tab' or 'space'

    Example:
        >>> detect_delimiter(['chr1\\t998371\\n', 'chr2\\t954\\n'])
        'tab'
        >>> detect_delimiter(['chr1 998371\\n'])
        'space'
    """
    tab_count = 0
    space_count = 0
    for line in islice(lines, DELIMITER_SAMPLE_LINES):
        tab_count += line.count("\t")
        space_count += line.count(" ")
    return "tab" if tab_count > space_count else "space"


def load_input_lines(path, delimiter: str = "auto") -> Tuple[List[str], str]:
    """
    Read every input line and resolve the input delimiter.

    The whole input is read up front so that '-' (stdin) can be sampled for
    delimiter detection and still parsed in full afterwards.

    Args:
        path: Input file path, or '-' for stdin
        delimiter: 'tab', 'space' or 'auto'

    Returns:
        Tuple of (lines, delimiter name)
    """
    with open_input(path) as fh:
        try:
            lines = fh.readlines()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Cannot read input file {path}: {e}") from e

    if delimiter == "auto":
        delimiter = detect_delimiter(lines)
        logger.info(f"Auto-detected input delimiter: {delimiter}")

    return lines, delimiter


def parse_record_line(line: str, delimiter: str) -> Optional[Tuple[str, int]]:
    """
    Split one input line into (chromosome token, position).

    Runs of the delimiter are collapsed and extra columns ignored.

    Returns:
        (chrom, position) for a valid line, None for a line to drop
    """
    fields = [field for field in line.rstrip("\r\n").split(delimiter) if field]
    if not fields:
        return None

    chrom = fields[0].strip()
    if not chrom or chrom.startswith(COMMENT_PREFIX):
        return None

    if len(fields) < 2:
        return None
    position = fields[1].strip()
    if not position.isascii() or not position.isdigit():
        return None

    return chrom, int(position)


def read_input_records(lines: Iterable[str], delimiter: str) -> List[RawRecord]:
    """
    Parse input lines into RawRecords.

    Args:
        lines: Raw input lines
        delimiter: Column delimiter character

    Returns:
        List of RawRecord with original_index numbered 0..n-1 over valid lines
    """
    records = []
    skipped = 0

    for line in lines:
        parsed = parse_record_line(line, delimiter)
        if parsed is None:
            skipped += 1
            continue
        chrom, position = parsed
        records.append(RawRecord(chrom, position, len(records)))

    if skipped:
        logger.debug(f"Skipped {skipped} blank, comment or malformed input lines")
    logger.info(f"Read {len(records):,} valid input records")

    return records
