import pytest

from common.lookup_config import LookupConfig
from conftest import FakeBackend, make_result
from snp_utils.models import LookupStatus, RawRecord, ReferenceFormat
from snp_utils.result_merger import merge_report_events, merge_result_blocks
from snp_utils.scheduler import ChunkScheduler, split_into_chunks


def numbered_records(count):
    return [RawRecord("chr1", pos, pos - 1) for pos in range(1, count + 1)]


def config_for(threads, chunk_size):
    return LookupConfig(threads=threads, chunk_size=chunk_size, reference_format=ReferenceFormat.PREFIXED)


def test_split_into_chunks_is_contiguous():
    chunks = split_into_chunks(numbered_records(5), 2)

    assert [[r.position for r in chunk] for chunk in chunks] == [[1, 2], [3, 4], [5]]
    assert split_into_chunks([], 3) == []


def test_split_into_chunks_rejects_non_positive_size():
    with pytest.raises(ValueError):
        split_into_chunks(numbered_records(2), 0)


def test_empty_input_produces_no_blocks():
    scheduler = ChunkScheduler(FakeBackend(), config_for(4, 10))

    assert scheduler.schedule([]) == []
    assert scheduler.stats['chunks_total'] == 0


@pytest.mark.parametrize("threads", [1, 3, 8])
def test_output_order_is_independent_of_concurrency(threads):
    results = [make_result("chr1", pos, f"rs{pos}") for pos in range(1, 41, 3)]
    # later chunks finish first
    backend = FakeBackend(results, delay=0.01)
    records = list(reversed(numbered_records(40)))

    blocks = ChunkScheduler(backend, config_for(threads, 4)).schedule(records)
    lines = list(merge_result_blocks(blocks))

    assert [block.chunk_index for block in blocks] == list(range(10))
    assert [int(line.split("\t")[1]) for line in lines] == list(range(40, 0, -1))
    found = {int(line.split("\t")[1]) for line in lines if line.split("\t")[2] != "."}
    assert found == set(range(1, 41, 3))


def test_concurrency_is_bounded_by_thread_count():
    backend = FakeBackend(delay=0.02)

    ChunkScheduler(backend, config_for(2, 1)).schedule(numbered_records(8))

    assert len(backend.queries) == 8
    assert backend.max_active <= 2


def test_failed_chunk_degrades_to_not_found():
    backend = FakeBackend(
        [make_result("chr1", 1, "rs1"), make_result("chr1", 2, "rs2"), make_result("chr1", 3, "rs3")],
        fail_positions=[3],
    )
    scheduler = ChunkScheduler(backend, config_for(2, 2))

    blocks = scheduler.schedule(numbered_records(5))
    lines = list(merge_result_blocks(blocks))
    events = merge_report_events(blocks)

    assert lines == [
        "chr1\t1\trs1\tA\tG",
        "chr1\t2\trs2\tA\tG",
        "chr1\t3\t.\t.\t.",
        "chr1\t4\t.\t.\t.",
        "chr1\t5\t.\t.\t.",
    ]
    assert [event.status for event in events] == [LookupStatus.FOUND] * 2 + [LookupStatus.NOT_FOUND] * 3
    assert blocks[1].degraded
    assert scheduler.stats['chunks_degraded'] == 1
    assert scheduler.stats['degraded_chunk_indices'] == [1]
    assert scheduler.stats['chunks_succeeded'] == 2


def test_unexpected_worker_exception_also_degrades():
    def exploding_worker(chunk_index, chunk, backend, config):
        raise RuntimeError("boom")

    scheduler = ChunkScheduler(FakeBackend(), config_for(1, 3), worker=exploding_worker)
    blocks = scheduler.schedule(numbered_records(3))

    assert len(blocks) == 1
    assert blocks[0].degraded
    assert list(merge_result_blocks(blocks)) == ["chr1\t1\t.\t.\t.", "chr1\t2\t.\t.\t.", "chr1\t3\t.\t.\t."]
