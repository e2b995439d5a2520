#!/usr/bin/env python3
"""
Chunk Scheduler

Splits the ordered input records into fixed-size chunks and runs them on a
bounded thread pool. Chunks are submitted in sequence order; the pool's
queue holds the ones waiting for a free worker. Results are collected as
they complete and placed back by chunk index, so the returned blocks are
always in input order whatever the completion order was.

A chunk whose backend query fails does not abort the run: the chunk is
reported NOT_FOUND in full and a warning is logged.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence

from common.lookup_config import LookupConfig
from .chunk_worker import not_found_block, process_chunk
from .errors import BackendError
from .models import RawRecord, ResultBlock

logger = logging.getLogger(__name__)


def split_into_chunks(records: Sequence[RawRecord], chunk_size: int) -> List[Sequence[RawRecord]]:
    """
    Partition records into contiguous chunks of at most chunk_size.

    Example:
        >>> [len(c) for c in split_into_chunks(list(range(5)), 2)]
        [2, 2, 1]
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [records[start:start + chunk_size] for start in range(0, len(records), chunk_size)]


class ChunkScheduler:
    """
    Bounded-concurrency dispatcher for chunk workers.

    Attributes:
        backend: LocusQueryBackend shared (read-only) by all workers
        config: Immutable run configuration
        worker: Callable processing one chunk (defaults to process_chunk)
        stats: Counters for chunks processed and degraded
    """

    def __init__(self, backend, config: LookupConfig, worker: Optional[Callable] = None):
        self.backend = backend
        self.config = config
        self.worker = worker or process_chunk
        self.stats = {
            'chunks_total': 0,
            'chunks_succeeded': 0,
            'chunks_degraded': 0,
            'degraded_chunk_indices': [],
        }

    def _run_chunk(self, chunk_index: int, chunk: Sequence[RawRecord]) -> ResultBlock:
        start = time.time()
        block = self.worker(chunk_index, chunk, self.backend, self.config)
        logger.debug(f"Chunk {chunk_index} completed in {time.time() - start:.2f}s")
        return block

    def _degrade(self, chunk_index: int, chunk: Sequence[RawRecord], error: Exception) -> ResultBlock:
        first = chunk[0].original_index + 1
        last = chunk[-1].original_index + 1
        logger.warning(f"Chunk {chunk_index} (records {first}-{last}) failed: {error}; "
                       f"reporting its {len(chunk)} records as NOT_FOUND")
        if isinstance(error, BackendError) and error.stderr:
            logger.debug(f"Backend stderr for chunk {chunk_index}: {error.stderr.strip()}")
        self.stats['chunks_degraded'] += 1
        self.stats['degraded_chunk_indices'].append(chunk_index)
        return not_found_block(chunk_index, chunk, self.config, degraded=True)

    def schedule(self, records: Sequence[RawRecord]) -> List[ResultBlock]:
        """
        Process all records and return result blocks in chunk sequence order.

        Args:
            records: All valid input records, in input order

        Returns:
            One ResultBlock per chunk, ordered by chunk index
        """
        chunks = split_into_chunks(records, self.config.chunk_size)
        self.stats['chunks_total'] = len(chunks)
        if not chunks:
            return []

        workers = min(self.config.threads, len(chunks))
        logger.info(f"Created {len(chunks)} chunks, processing with {workers} threads...")

        blocks: List[Optional[ResultBlock]] = [None] * len(chunks)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="chunk") as executor:
            # Submission order is chunk order; the executor queue is FIFO
            future_to_index = {
                executor.submit(self._run_chunk, index, chunk): index
                for index, chunk in enumerate(chunks)
            }

            for future in as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    blocks[index] = future.result()
                    self.stats['chunks_succeeded'] += 1
                except Exception as e:
                    blocks[index] = self._degrade(index, chunks[index], e)

        if self.stats['chunks_degraded']:
            logger.warning(f"{self.stats['chunks_degraded']} of {len(chunks)} chunks degraded to NOT_FOUND")
        else:
            logger.info(f"✓ All {len(chunks)} chunks processed successfully")

        return blocks
