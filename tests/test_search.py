import io
import pickle
import threading

import pytest

import Pp_Solver as pps


# n <= 20 with prod{ p : n < p <= 2n } < 2^n
DENSE_TO_20 = [2, 3, 5, 8, 13, 14, 20]


def table_for(bound):
    return pps.build_prime_table(pps.sympy_prime_source(2 * bound), bound)


def worker_for(table, candidates, strategy="incremental", backend="gmpy2"):
    params = pps.WorkerParams(
        candidates=candidates,
        exponent_strategy=strategy,
        backend=backend,
        progress_every=1000,
        start_time=0.0,
    )
    return pps.SearchWorker(table, params, "w0")


def test_n1_is_not_a_counterexample():
    table = pps.PrimeTable(primes=(2, 3, 5, 7, 11, 13), bound=6)
    w = worker_for(table, range(1, 7))
    assert w.check(1) is None


def test_n4_is_not_a_counterexample():
    table = pps.PrimeTable(primes=(2, 3, 5, 7, 11, 13), bound=6)
    w = worker_for(table, range(1, 7), strategy="direct")
    assert table.primes_between(4, 8) == (5, 7)
    assert w.check(4) is None


def test_n2_is_a_counterexample():
    table = pps.PrimeTable(primes=(2, 3, 5, 7, 11, 13), bound=6)
    w = worker_for(table, range(1, 7))
    assert w.check(2) == pps.Counterexample(n=2, product=3, exp=4)


def test_search_chunk_collects_hits_and_progress():
    table = table_for(20)
    params = pps.WorkerParams(
        candidates=pps.dense_candidates(20),
        exponent_strategy="incremental",
        backend="int",
        progress_every=5,
        start_time=0.0,
    )
    w = pps.SearchWorker(table, params, "w0")
    res = w.search_chunk(pps.ChunkTask(a=0, b=20))
    assert [c.n for c in res.counterexamples] == DENSE_TO_20
    assert res.tried == 20
    assert [(p[1], p[2]) for p in res.progress] == [(5, 5), (10, 10), (15, 15), (20, 20)]
    assert all(type(c.product) is int and type(c.exp) is int for c in res.counterexamples)


def test_search_chunk_out_of_order_raises():
    table = table_for(20)
    w = worker_for(table, pps.dense_candidates(20))
    w.search_chunk(pps.ChunkTask(a=10, b=15))
    with pytest.raises(pps.MonotonicityError):
        w.search_chunk(pps.ChunkTask(a=0, b=5))


def test_merge_sorts_buffers():
    a = [pps.Counterexample(5, 7, 32), pps.Counterexample(2, 3, 4)]
    b = [pps.Counterexample(9, 2431, 512)]
    assert [c.n for c in pps.merge_counterexamples([a, b])] == [2, 5, 9]
    assert pps.merge_counterexamples([]) == []


def test_sparse_candidates():
    table = table_for(328)
    cands = pps.sparse_candidates(table, 328)
    assert len(cands) == 64
    assert cands[0] == 1
    assert cands[-1] == 156
    assert list(cands) == sorted(set(cands))

    small = pps.sparse_candidates(table_for(20), 20)
    assert small == (1, 2, 3, 5, 6, 8, 9, 11, 14, 15, 18, 20)


def test_make_chunks_cover_range():
    tasks = pps.make_chunks(10, 3)
    assert [(t.a, t.b) for t in tasks] == [(0, 3), (3, 6), (6, 9), (9, 10)]
    assert pps.auto_chunk_size(100000, 4) == 1000
    assert pps.auto_chunk_size(10, 4) == 1


@pytest.mark.parametrize("strategy", ["incremental", "direct"])
@pytest.mark.parametrize("backend", ["gmpy2", "int"])
def test_dense_search_threads(strategy, backend):
    table = table_for(20)
    config = pps.SearchConfig(mode="dense", bound=20, workers=3, chunk_size=2,
                              executor="thread", exponent_strategy=strategy, backend=backend)
    result = pps.run_search(table, config)
    assert [c.n for c in result.counterexamples] == DENSE_TO_20
    assert result.stats["total_tried"] == 20
    for c in result.counterexamples:
        assert c.exp == 1 << c.n
        assert c.product < c.exp


def test_sparse_agrees_with_dense_on_shared_candidates():
    bound = 200
    table = table_for(bound)
    dense = pps.run_search(table, pps.SearchConfig(mode="dense", bound=bound, workers=2,
                                                   executor="thread"))
    sparse = pps.run_search(table, pps.SearchConfig(mode="sparse", bound=bound, workers=2,
                                                    executor="thread", exponent_strategy="direct"))
    shared = set(pps.sparse_candidates(table, bound))
    dense_hits = [(c.n, c.product, c.exp) for c in dense.counterexamples if c.n in shared]
    sparse_hits = [(c.n, c.product, c.exp) for c in sparse.counterexamples]
    assert sparse_hits == dense_hits
    assert max(c.n for c in dense.counterexamples) == max(c.n for c in sparse.counterexamples)


def test_search_is_repeatable():
    table = table_for(60)
    config = pps.SearchConfig(mode="dense", bound=60, workers=4, chunk_size=3, executor="thread")
    first = pps.run_search(table, config)
    second = pps.run_search(table, config)
    assert first.counterexamples == second.counterexamples


def test_process_pool_matches_thread_pool():
    table = table_for(40)
    procs = pps.run_search(table, pps.SearchConfig(mode="dense", bound=40, workers=2,
                                                   chunk_size=5, executor="process"))
    threads = pps.run_search(table, pps.SearchConfig(mode="dense", bound=40, workers=2,
                                                     chunk_size=5, executor="thread"))
    assert procs.counterexamples == threads.counterexamples
    assert [c.n for c in procs.counterexamples][:7] == DENSE_TO_20


def test_search_writes_log_lines(capsys):
    table = table_for(20)
    logf = io.StringIO()
    config = pps.SearchConfig(mode="dense", bound=20, workers=1, chunk_size=10,
                              executor="thread", progress_every=10)
    pps.run_search(table, config, logf=logf)
    text = logf.getvalue()
    assert "progress worker=" in text
    assert "chunks_done=2/2" in text
    console = capsys.readouterr().out.splitlines()
    reached = [ln for ln in console if "has reached" in ln]
    assert len(reached) == 2
    assert all(ln.startswith("[>] Worker ") for ln in reached)


def test_search_past_table_aborts():
    # table built for bound 5 cannot answer n=20
    table = table_for(5)
    config = pps.SearchConfig(mode="dense", bound=20, workers=2, executor="thread")
    with pytest.raises(pps.RangeExceeded):
        pps.run_search(table, config)


def test_thread_abort_skips_queued_chunks(monkeypatch):
    # first failure at n=6; thousands of chunks are still queued behind it
    table = table_for(5)
    calls = []
    lock = threading.Lock()
    original = pps.SearchWorker.search_chunk

    def counting(self, task):
        with lock:
            calls.append(task.a)
        return original(self, task)

    monkeypatch.setattr(pps.SearchWorker, "search_chunk", counting)
    config = pps.SearchConfig(mode="dense", bound=3000, workers=1, chunk_size=1,
                              executor="thread", exponent_strategy="direct")
    with pytest.raises(pps.RangeExceeded):
        pps.run_search(table, config)
    assert len(calls) < 100


def test_process_pool_abort_propagates():
    table = table_for(5)
    config = pps.SearchConfig(mode="dense", bound=20, workers=2, chunk_size=2,
                              executor="process")
    with pytest.raises(pps.RangeExceeded):
        pps.run_search(table, config)


def test_search_errors_survive_pickling():
    for exc in (pps.RangeExceeded("interval (6, 12] exceeds prime table"),
                pps.MonotonicityError("cannot move back")):
        again = pickle.loads(pickle.dumps(exc))
        assert type(again) is type(exc)
        assert str(again) == str(exc)


def test_sparse_bound_one_keeps_first_candidate():
    limit = pps.table_limit("sparse", 1)
    assert limit == 3
    assert pps.table_limit("dense", 1) == 2
    table = pps.build_prime_table(pps.sympy_prime_source(limit), 1, limit)
    assert table.primes == (2, 3)
    assert pps.sparse_candidates(table, 1) == (1,)
    result = pps.run_search(table, pps.SearchConfig(mode="sparse", bound=1, workers=1,
                                                    executor="thread"))
    assert result.stats["total_tried"] == 1
    assert result.counterexamples == []


def test_unknown_executor():
    table = table_for(5)
    with pytest.raises(ValueError):
        pps.run_search(table, pps.SearchConfig(mode="dense", bound=5, executor="gpu"))
