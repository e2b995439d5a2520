"""
Result merging and output writing.

Blocks arrive from the scheduler already in chunk sequence order; merging
is plain concatenation, with no deduplication or re-sorting.
"""
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from .models import ReportEvent, ResultBlock

logger = logging.getLogger(__name__)


def merge_result_blocks(blocks: Iterable[ResultBlock]) -> Iterator[str]:
    """Yield every output line of every block, block by block."""
    for block in blocks:
        yield from block.output_lines


def merge_report_events(blocks: Iterable[ResultBlock]) -> List[ReportEvent]:
    return [event for block in blocks for event in block.report_events]


@contextmanager
def open_output(output_path: Optional[Path]):
    """Open the output destination; None means standard output."""
    if output_path is None:
        yield sys.stdout
        sys.stdout.flush()
        return

    output_path = Path(output_path)
    if output_path.parent and not output_path.parent.exists():
        logger.info(f"Creating output directory: {output_path.parent}")
        output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as fh:
        yield fh


def write_output(lines: Iterable[str], output_path: Optional[Path] = None) -> int:
    """
    Write merged output lines to a file or stdout.

    Returns:
        Number of lines written
    """
    count = 0
    with open_output(output_path) as fh:
        for line in lines:
            fh.write(line)
            fh.write("\n")
            count += 1

    logger.info(f"✓ Wrote {count:,} output lines to {output_path or 'stdout'}")
    return count
