"""
Data model for the chunked lookup engine.

Records flow through the engine as:

    RawRecord -> CanonicalLocus -> QueryResult (when found)
              -> ReportEvent (always, one per record)

RawRecord.original_index is the only ordering key; chunks and result
blocks keep records in that order.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple


class ReferenceFormat(Enum):
    """Chromosome naming convention used by the reference store."""
    PREFIXED = "PREFIXED"   # chr1, chrX, chrMT
    BARE = "BARE"           # 1, X, MT


class LookupStatus(Enum):
    """Outcome of looking up one input record."""
    FOUND = "FOUND"
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class RawRecord:
    """One validated input line."""
    original_chrom_token: str
    position: int
    original_index: int


@dataclass(frozen=True)
class CanonicalLocus:
    """A locus spelled in the backend's own chromosome naming convention."""
    chromosome: str
    position: int


@dataclass(frozen=True)
class QueryResult:
    """
    One record reported by the backend for a queried locus.

    ``info`` holds exactly one value per requested INFO field, in request
    order, with '.' for values the record does not carry.
    """
    locus: CanonicalLocus
    id: str
    ref: str
    alt: str
    info: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ReportEvent:
    status: LookupStatus
    output_chromosome: str
    position: int

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND


@dataclass
class ResultBlock:
    """
    Output of one chunk worker.

    Attributes:
        chunk_index: Sequence number of the chunk in the input stream
        output_lines: One formatted output line per record, in record order
        report_events: One ReportEvent per record, in record order
        degraded: True when the chunk was reported NOT_FOUND after a backend failure
    """
    chunk_index: int
    output_lines: List[str] = field(default_factory=list)
    report_events: List[ReportEvent] = field(default_factory=list)
    degraded: bool = False

    def __len__(self) -> int:
        return len(self.output_lines)


@dataclass(frozen=True)
class ReportSummary:
    """Summary statistics derived from the full list of report events."""
    total: int
    found: int
    not_found: int
    success_rate_percent: int
