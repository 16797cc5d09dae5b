#!/usr/bin/env python3
# Pp_Solver.py version 1
"""
Prime-product counterexample search: prod{ p : n < p <= 2n } versus 2^n

Purpose
-------
Search, by brute force, for integers n where the product of all primes in the
interval (n, 2n] is smaller than 2^n.  Each hit is recorded exactly (the full
product and the full power of two) so the result file can be re-verified
independently with Pp_Checker.py.

Mathematical framework
----------------------
For a candidate n we form

    P(n) = prod { p prime : n < p <= 2n }      (empty product = 1)

and compare it with 2^n.  A counterexample is any n with P(n) < 2^n; the
comparison is strict, so n=1 (P=2, 2^1=2) is not one.

The interval convention is (n, 2n]: the lower end is excluded.  This only
matters when n itself is prime, where n drops out of the product, so every
counterexample of the closed form [n, 2n] is also reported here (the converse
does not hold).

Operating modes
---------------
  --mode dense    every n in [1, bound]          (default 1,000,000, max 39,500,000)
  --mode sparse   n = (p_i - 1)/2 for i=1..64    (default 328, max 328)

The sparse mode rests on the observation that for any counterexample there is
one at least as large of the form (p-1)/2, and that no counterexample exceeds
the range covered by p_64 = 313.

Work partitioning
-----------------
Candidate indices are cut into chunks that pool workers pull in ascending
order.  Each worker owns one ExponentTracker that keeps 2^n alive between
candidates and extends it by a left shift instead of re-powering.  The
tracker refuses to move backwards (MonotonicityError); use --exponent direct
to recompute 1 << n on every candidate instead.

How to run
----------
1) Sparse sweep with the built-in sympy prime source:
       python3 Pp_Solver.py --mode sparse
2) Dense sweep to 200000 on 8 processes, primes read from a file:
       python3 Pp_Solver.py 200000 --mode dense --workers 8 --primes_file primes.txt
3) Re-verify the result file:
       python3 Pp_Checker.py Pp_Solver_v1_runs/results.txt --bound 200000

Use --version to print a machine-readable environment/version block.
"""

from __future__ import annotations

import argparse
import hashlib
import json
import os
import platform
import subprocess
import sys
import threading

# Disable Python's safety limit on int() string conversion; 2^n is printed in full.
try:
    sys.set_int_max_str_digits(0)
except AttributeError:
    pass

import time
from bisect import bisect_right
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import reduce
from multiprocessing import get_context
from operator import mul
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, TextIO, Tuple

import gmpy2
import sympy


program_name, program_version = "Pp_Solver", 1


# ----------------------------- switches (set by args) -----------------------------
DEBUG = False
ASSERTIONS = False
ENV: Dict[str, object] = {}


# ----------------------------- bounds -----------------------------
DENSE_DEFAULT_BOUND = 1_000_000
DENSE_MAX_BOUND = 39_500_000
SPARSE_DEFAULT_BOUND = 328
SPARSE_MAX_BOUND = 328

# table[64] = 313 is the largest prime needed in sparse mode.
# https://math.stackexchange.com/a/4497175/114928
SPARSE_INDEX_BOUND = 65

PROGRESS_EVERY = 1000

MODE_BOUNDS: Dict[str, Tuple[int, int]] = {
    "dense": (DENSE_DEFAULT_BOUND, DENSE_MAX_BOUND),
    "sparse": (SPARSE_DEFAULT_BOUND, SPARSE_MAX_BOUND),
}


# ----------------------------- errors -----------------------------
class ProductSearchError(Exception):
    """Base exception for errors in the counterexample search."""
    pass

class PrimeSourceError(ProductSearchError):
    """Raised when the prime source yields malformed or unordered values."""
    pass

class PrimeTableUnderrun(ProductSearchError):
    """Raised when the prime source ends before reaching the table limit."""
    pass

class RangeExceeded(ProductSearchError):
    """Raised when an interval query reaches past the loaded table."""
    pass

class MonotonicityError(ProductSearchError):
    """Raised when an ExponentTracker is asked to move to a smaller exponent."""
    pass


# ----------------------------- small utilities -----------------------------
def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()

def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)

def sha256_file(path: str) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):
            h.update(chunk)
    return h.hexdigest()

def get_git_commit() -> Optional[str]:
    # Best effort: if this file is inside a git repo, return HEAD commit hash.
    try:
        r = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            check=True,
        )
        s = (r.stdout or "").strip()
        return s if s else None
    except (OSError, subprocess.CalledProcessError):
        return None

def env_block(script_path: str, argv: List[str]) -> Dict[str, object]:
    return {
        "script_path": os.path.abspath(script_path),
        "script_sha256": sha256_file(script_path),
        "git_commit": get_git_commit(),
        "command_line": " ".join(argv),
        "python_version": sys.version.replace("\n", " "),
        "platform": platform.platform(),
        "gmpy2_version": gmpy2.version(),
        "sympy_version": sympy.__version__,
        "cpu_count": os.cpu_count(),
    }


def clamp_bound(raw: Optional[str], mode: str) -> int:
    """Parse the positional bound for ``mode``.

    Missing, non-numeric or non-positive input falls back to the mode default
    without complaint; anything above the mode maximum is clamped to it.
    """
    default, max_bound = MODE_BOUNDS[mode]
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        return default
    if value < 1:
        return default
    return min(value, max_bound)


# ----------------------------- prime sources -----------------------------
# A prime source is any iterable of ascending primes.  The table builder reads it
# lazily and stops at the first prime >= 2*bound, so an unbounded source is fine.

def file_prime_source(path: str) -> Iterator[int]:
    """Yield integers from a whitespace/newline separated text file, in file order."""
    with open(path, "r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            s = line.strip()
            if not s or s.startswith("#"):
                continue
            for tok in s.split():
                try:
                    yield int(tok)
                except ValueError:
                    raise PrimeSourceError(f"{path}:{line_num}: not an integer: {tok!r}") from None

def sympy_prime_source(limit: int) -> Iterator[int]:
    """Yield every prime from 2 up to and including the first prime >= limit."""
    last = sympy.nextprime(max(1, limit - 1))
    for p in sympy.primerange(2, last + 1):
        yield int(p)


# ----------------------------- prime table -----------------------------
@dataclass(frozen=True)
class PrimeTable:
    primes: Tuple[int, ...]
    bound: int

    def __len__(self) -> int:
        return len(self.primes)

    def __getitem__(self, i: int) -> int:
        return self.primes[i]

    @property
    def max_prime(self) -> int:
        return self.primes[-1] if self.primes else 0

    def primes_between(self, lo: int, hi: int, strict: bool = True) -> Tuple[int, ...]:
        """Return the table entries p with lo < p <= hi, ascending.

        One bisection finds the first prime > lo, then a forward scan collects
        while p <= hi.  Queries with hi past the last loaded prime raise
        RangeExceeded; with strict=False they are truncated at the table end.
        """
        if hi < lo:
            raise ValueError(f"empty interval: lo={lo} > hi={hi}")
        primes = self.primes
        if strict and hi > self.max_prime:
            raise RangeExceeded(
                f"interval ({lo}, {hi}] exceeds prime table (max prime {self.max_prime}, "
                f"{len(primes)} primes loaded)"
            )
        out: List[int] = []
        i = bisect_right(primes, lo)
        n = len(primes)
        while i < n and primes[i] <= hi:
            out.append(primes[i])
            i += 1
        return tuple(out)


def table_limit(mode: str, bound: int) -> int:
    """Smallest value the table has to reach for ``mode`` at ``bound``.

    Sparse candidates are (p-1)/2, so p itself can be 2*bound+1; that only
    exceeds the first prime >= 2*bound when bound == 1 (table (2,) misses 3).
    """
    return 2 * bound + 1 if mode == "sparse" else 2 * bound


def build_prime_table(source: Iterable[int], bound: int, limit: Optional[int] = None) -> PrimeTable:
    """Collect ascending primes from ``source`` until one is >= limit (inclusive).

    ``limit`` defaults to 2*bound.  Reading stops at that prime, so small bounds
    never pay for a full load.
    """
    if bound < 1:
        raise ValueError(f"bound must be >= 1, got {bound}")
    limit = 2 * bound if limit is None else limit
    primes: List[int] = []
    last = 0
    for p in source:
        p = int(p)
        if p <= last:
            raise PrimeSourceError(
                f"prime source not strictly ascending: {p} after {last} (entry {len(primes) + 1})"
            )
        if p < 2:
            raise PrimeSourceError(f"prime source yielded {p}")
        primes.append(p)
        last = p
        if p >= limit:
            return PrimeTable(primes=tuple(primes), bound=bound)
    raise PrimeTableUnderrun(
        f"prime source exhausted at {last} ({len(primes)} primes) before reaching {limit}"
    )


# ----------------------------- big integers -----------------------------
# gmpy2's mpz is the default arithmetic; builtin int is kept as a selectable
# backend for comparison runs.  Both support *, << and < the same way.

@dataclass(frozen=True)
class BigIntBackend:
    name: str

    def coerce(self, v: int):
        return gmpy2.mpz(v) if self.name == "gmpy2" else int(v)

    def product(self, values: Sequence[int]):
        return reduce(mul, map(self.coerce, values), self.coerce(1))

    def power_of_two(self, n: int):
        return self.coerce(1) << n


BACKENDS: Dict[str, BigIntBackend] = {
    "gmpy2": BigIntBackend("gmpy2"),
    "int": BigIntBackend("int"),
}

EXPONENT_STRATEGIES = ("incremental", "direct")


# ----------------------------- exponent tracker -----------------------------
class ExponentTracker:
    """Per-worker running value of 2^exponent.

    incremental: advance_to(n) shifts the stored value left by n - exponent.
                 n must never decrease.
    direct:      every call recomputes 1 << n; no ordering requirement.
    """

    def __init__(self, strategy: str = "incremental", backend: Optional[BigIntBackend] = None):
        if strategy not in EXPONENT_STRATEGIES:
            raise ValueError(f"unknown exponent strategy {strategy!r}")
        self.strategy = strategy
        self.backend = backend or BACKENDS["gmpy2"]
        self.value = self.backend.coerce(2)
        self.exponent = 1

    def advance_to(self, n: int):
        if n < self.exponent:
            raise MonotonicityError(f"exponent tracker at 2^{self.exponent} cannot move back to 2^{n}")
        self.value <<= n - self.exponent
        self.exponent = n
        return self.value

    def power_of_two(self, n: int):
        if self.strategy == "incremental":
            self.advance_to(n)
        else:
            self.value = self.backend.power_of_two(n)
            self.exponent = n
        if ASSERTIONS:
            assert self.value == 1 << self.exponent, f"tracker drifted at exponent {self.exponent}"
        return self.value


# ----------------------------- candidates -----------------------------
def dense_candidates(bound: int) -> range:
    return range(1, bound + 1)

def sparse_candidates(table: PrimeTable, bound: int, index_bound: int = SPARSE_INDEX_BOUND) -> Tuple[int, ...]:
    """(p_i - 1)/2 for 1 <= i < index_bound, restricted to values <= bound."""
    stop = min(index_bound, len(table))
    out = [(table[i] - 1) // 2 for i in range(1, stop)]
    return tuple(n for n in out if n <= bound)

def build_candidates(mode: str, table: PrimeTable, bound: int) -> Sequence[int]:
    if mode == "dense":
        return dense_candidates(bound)
    if mode == "sparse":
        return sparse_candidates(table, bound)
    raise ValueError(f"unknown mode {mode!r}")


# ----------------------------- search worker -----------------------------
@dataclass(frozen=True)
class Counterexample:
    n: int
    product: int
    exp: int


@dataclass(frozen=True)
class WorkerParams:
    candidates: Sequence[int]     # range for dense, tuple for sparse
    exponent_strategy: str
    backend: str
    progress_every: int
    start_time: float             # epoch seconds, shared clock across processes


@dataclass(frozen=True)
class ChunkTask:
    a: int = 0
    b: int = 0


@dataclass
class ChunkResult:
    task: ChunkTask
    worker_id: str
    counterexamples: List[Counterexample]
    tried: int
    elapsed_sec: float
    progress: List[Tuple[str, int, int, float]] = field(default_factory=list)


class SearchWorker:
    """One pool worker: the shared table, a private tracker, and nothing else."""

    def __init__(self, table: PrimeTable, params: WorkerParams, worker_id: str):
        self.table = table
        self.params = params
        self.worker_id = worker_id
        self.backend = BACKENDS[params.backend]
        self.tracker = ExponentTracker(params.exponent_strategy, self.backend)

    def check(self, n: int) -> Optional[Counterexample]:
        primes = self.table.primes_between(n, 2 * n)
        product = self.backend.product(primes)
        exp = self.tracker.power_of_two(n)
        if product < exp:
            return Counterexample(n=n, product=int(product), exp=int(exp))
        return None

    def search_chunk(self, task: ChunkTask) -> ChunkResult:
        t0 = time.time()
        candidates = self.params.candidates
        every = self.params.progress_every
        buffer: List[Counterexample] = []
        progress: List[Tuple[str, int, int, float]] = []

        for i in range(task.a, task.b):
            n = candidates[i]
            position = i + 1
            if every > 0 and position % every == 0:
                progress.append((self.worker_id, position, n, time.time() - self.params.start_time))
            hit = self.check(n)
            if hit is not None:
                buffer.append(hit)

        return ChunkResult(
            task=task,
            worker_id=self.worker_id,
            counterexamples=buffer,
            tried=task.b - task.a,
            elapsed_sec=time.time() - t0,
            progress=progress,
        )


# Worker state lives in thread-local storage so the same initializer serves a
# process pool (one main thread per process) and a thread pool.
_LOCAL = threading.local()


def _worker_id() -> str:
    return f"{os.getpid()}:{threading.current_thread().name}"

def _init_worker(table: PrimeTable, params: WorkerParams, debug: bool, assertions: bool) -> None:
    global DEBUG, ASSERTIONS
    try:
        sys.set_int_max_str_digits(0)
    except AttributeError:
        pass
    DEBUG = debug
    ASSERTIONS = assertions
    _LOCAL.worker = SearchWorker(table, params, _worker_id())

def _run_chunk(task: ChunkTask) -> ChunkResult:
    return _LOCAL.worker.search_chunk(task)


# ----------------------------- collector -----------------------------
def merge_counterexamples(buffers: Iterable[Sequence[Counterexample]]) -> List[Counterexample]:
    """Concatenate per-worker buffers and sort ascending by n."""
    merged: List[Counterexample] = []
    for buf in buffers:
        merged.extend(buf)
    merged.sort(key=lambda c: c.n)
    return merged


# ----------------------------- driver -----------------------------
@dataclass(frozen=True)
class SearchConfig:
    mode: str = "sparse"
    bound: int = SPARSE_DEFAULT_BOUND
    workers: int = 0
    chunk_size: int = 0
    executor: str = "process"
    exponent_strategy: str = "incremental"
    backend: str = "gmpy2"
    progress_every: int = PROGRESS_EVERY


@dataclass
class SearchResult:
    counterexamples: List[Counterexample]
    stats: Dict[str, object]


def make_chunks(total: int, chunk_size: int) -> List[ChunkTask]:
    tasks: List[ChunkTask] = []
    for a in range(0, total, chunk_size):
        tasks.append(ChunkTask(a=a, b=min(total, a + chunk_size)))
    return tasks

def auto_chunk_size(total: int, workers: int) -> int:
    # about 8 chunks per worker, never more than PROGRESS_EVERY candidates each
    return max(1, min(PROGRESS_EVERY, total // max(1, workers * 8)))


def _iter_results(config: SearchConfig, table: PrimeTable, params: WorkerParams,
                  tasks: List[ChunkTask], workers: int) -> Iterator[ChunkResult]:
    initargs = (table, params, DEBUG, ASSERTIONS)
    if config.executor == "thread":
        with ThreadPoolExecutor(max_workers=workers, initializer=_init_worker, initargs=initargs) as ex:
            futs = [ex.submit(_run_chunk, t) for t in tasks]
            try:
                for fut in as_completed(futs):
                    yield fut.result()
            except BaseException:
                # queued chunks must not run once the sweep is aborted
                for f in futs:
                    f.cancel()
                raise
    elif config.executor == "process":
        ctx = get_context("fork") if sys.platform == "darwin" else get_context()
        with ctx.Pool(processes=workers, initializer=_init_worker, initargs=initargs) as pool:
            for res in pool.imap_unordered(_run_chunk, tasks, chunksize=1):
                yield res
    else:
        raise ValueError(f"unknown executor {config.executor!r}")


def run_search(table: PrimeTable, config: SearchConfig, logf: Optional[TextIO] = None,
               start_time: Optional[float] = None) -> SearchResult:
    """Run the parallel sweep over ``config.mode`` candidates and return sorted counterexamples.

    Any exception raised by a worker aborts the run; nothing is retried.
    """
    if config.exponent_strategy not in EXPONENT_STRATEGIES:
        raise ValueError(f"unknown exponent strategy {config.exponent_strategy!r}")
    if config.backend not in BACKENDS:
        raise ValueError(f"unknown backend {config.backend!r}")

    start_time = time.time() if start_time is None else start_time
    candidates = build_candidates(config.mode, table, config.bound)
    total = len(candidates)
    workers = config.workers if config.workers > 0 else (os.cpu_count() or 1)
    chunk_size = config.chunk_size if config.chunk_size > 0 else auto_chunk_size(total, workers)
    tasks = make_chunks(total, chunk_size)

    params = WorkerParams(
        candidates=candidates,
        exponent_strategy=config.exponent_strategy,
        backend=config.backend,
        progress_every=config.progress_every,
        start_time=start_time,
    )

    stats: Dict[str, object] = {
        "mode": config.mode,
        "bound": config.bound,
        "candidates": total,
        "first_candidate": candidates[0] if total else None,
        "last_candidate": candidates[-1] if total else None,
        "table_primes": len(table),
        "table_max_prime": table.max_prime,
        "workers": workers,
        "executor": config.executor,
        "exponent_strategy": config.exponent_strategy,
        "backend": config.backend,
        "chunk_size": chunk_size,
        "tasks": len(tasks),
        "total_tried": 0,
        "per_worker_tried": {},
    }

    buffers: Dict[str, List[Counterexample]] = {}
    per_worker: Dict[str, int] = {}
    done = 0

    if tasks:
        for res in _iter_results(config, table, params, tasks, workers):
            done += 1
            buffers.setdefault(res.worker_id, []).extend(res.counterexamples)
            per_worker[res.worker_id] = per_worker.get(res.worker_id, 0) + res.tried
            stats["total_tried"] = int(stats["total_tried"]) + res.tried

            for (wid, position, n, elapsed) in res.progress:
                line = f"Worker {wid} has reached {n} (candidate {position}) after {elapsed:.3f} seconds."
                print(f"[>] {line}", flush=True)
                if logf is not None:
                    logf.write(f"{utc_now_iso()} progress worker={wid} position={position} n={n} elapsed={elapsed:.3f}\n")

            if logf is not None and (DEBUG or done % 25 == 0 or done == len(tasks)):
                logf.write(
                    f"{utc_now_iso()} chunks_done={done}/{len(tasks)} "
                    f"cum_tried={stats['total_tried']} "
                    f"hits={sum(len(b) for b in buffers.values())}"
                )
                if DEBUG:
                    logf.write(f" last_chunk=[{res.task.a},{res.task.b}) worker={res.worker_id} "
                               f"chunk_sec={res.elapsed_sec:.3f}")
                logf.write("\n")
                logf.flush()

    counterexamples = merge_counterexamples(buffers.values())
    stats["per_worker_tried"] = per_worker
    stats["counterexample_count"] = len(counterexamples)
    stats["counterexample_ns"] = [c.n for c in counterexamples]
    stats["elapsed_sec"] = time.time() - start_time
    return SearchResult(counterexamples=counterexamples, stats=stats)


# ----------------------------- reporting -----------------------------
def format_counterexample(c: Counterexample) -> str:
    return (
        f"Counterexample at n = {c.n}\n"
        f"Product of primes between n and 2n = {c.product}\n"
        f"2^n = {c.exp}"
    )

def format_report(counterexamples: Sequence[Counterexample], elapsed_sec: float) -> str:
    blocks = "\n\n".join(format_counterexample(c) for c in counterexamples)
    tail = f"Final case checked after {elapsed_sec:.3f} seconds.\n"
    return f"{blocks}\n\n{tail}" if blocks else tail

def write_report(counterexamples: Sequence[Counterexample], elapsed_sec: float,
                 sinks: Sequence[TextIO]) -> str:
    """Write the same report text to every sink (console, results file)."""
    text = format_report(counterexamples, elapsed_sec)
    for sink in sinks:
        sink.write(text)
        sink.flush()
    return text


def write_summary_json(
    path: str,
    config: SearchConfig,
    start_utc: str,
    end_utc: str,
    runtime_sec: float,
    env: Dict[str, object],
    primes_file: Optional[str],
    results_file: str,
    log_file: str,
    stats: Dict[str, object],
) -> None:
    summary = {
        "environment": env,
        "inequality": "prod{p prime : n < p <= 2n} >= 2^n",
        "config": {
            "mode": config.mode,
            "bound": config.bound,
            "workers": config.workers,
            "chunk_size": config.chunk_size,
            "executor": config.executor,
            "exponent_strategy": config.exponent_strategy,
            "backend": config.backend,
            "progress_every": config.progress_every,
        },
        "prime_source": primes_file if primes_file else "sympy.primerange",
        "start_utc": start_utc,
        "end_utc": end_utc,
        "runtime_seconds": runtime_sec,
        "stats": stats,
        "artifacts": {
            "results_file": results_file,
            "results_file_sha256": sha256_file(results_file) if os.path.isfile(results_file) else None,
            "log_file": log_file,
            "log_file_sha256": sha256_file(log_file) if os.path.isfile(log_file) else None,
            "primes_file_sha256": sha256_file(primes_file) if primes_file and os.path.isfile(primes_file) else None,
        },
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2, sort_keys=True)


# ----------------------------- main -----------------------------
def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Pp_Solver: search for n where the product of primes in (n, 2n] is below 2^n.",
    )
    ap.add_argument("bound", nargs="?", default=None,
                    help="Search bound. Malformed values fall back to the mode default; "
                         "values above the mode maximum are clamped "
                         f"(dense {DENSE_DEFAULT_BOUND}/{DENSE_MAX_BOUND}, "
                         f"sparse {SPARSE_DEFAULT_BOUND}/{SPARSE_MAX_BOUND}).")
    ap.add_argument("--version", action="store_true",
                    help="Print version/environment info and exit")
    ap.add_argument("--mode", default="sparse", choices=["dense", "sparse"],
                    help="dense: every n in [1, bound]. sparse: n=(p-1)/2 for the first "
                         f"{SPARSE_INDEX_BOUND - 1} odd primes.")
    ap.add_argument("--primes_file", default=None,
                    help="Text file of ascending primes. Default: generate with sympy.")
    ap.add_argument("--outdir", default=f"{program_name}_v{program_version}_runs")
    ap.add_argument("--workers", type=int, default=0)
    ap.add_argument("--chunk_size", type=int, default=0,
                    help="Candidates per chunk (0 = auto).")
    ap.add_argument("--executor", default="process", choices=["process", "thread"])
    ap.add_argument("--exponent", default="incremental", choices=list(EXPONENT_STRATEGIES),
                    help="incremental: shift 2^n forward per worker. direct: recompute 1<<n each time.")
    ap.add_argument("--backend", default="gmpy2", choices=sorted(BACKENDS))
    ap.add_argument("--progress_every", type=int, default=PROGRESS_EVERY)
    ap.add_argument("--debug", action="store_true")
    ap.add_argument("--assertions", action="store_true")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    global DEBUG, ASSERTIONS, ENV

    ap = build_arg_parser()
    args = ap.parse_args(argv)

    if args.version:
        info = env_block(__file__, sys.argv)
        print(json.dumps(info, indent=2, sort_keys=True))
        return 0

    DEBUG = bool(args.debug)
    ASSERTIONS = bool(args.assertions)
    ENV = env_block(__file__, sys.argv)

    bound = clamp_bound(args.bound, args.mode)
    config = SearchConfig(
        mode=args.mode,
        bound=bound,
        workers=args.workers,
        chunk_size=args.chunk_size,
        executor=args.executor,
        exponent_strategy=args.exponent,
        backend=args.backend,
        progress_every=args.progress_every,
    )

    outdir = args.outdir
    ensure_dir(outdir)
    results_path = os.path.join(outdir, "results.txt")
    log_path = os.path.join(outdir, "run.log")
    summary_path = os.path.join(outdir, "summary.json")

    print(f"[+] {program_name} v{program_version}")
    print(f"[+] mode={config.mode} bound={bound} outdir={outdir}")
    print(f"[+] workers={config.workers or os.cpu_count()} executor={config.executor} "
          f"chunk_size={config.chunk_size or 'auto'}")
    print(f"[+] exponent={config.exponent_strategy} backend={config.backend}")
    print(f"[+] primes={args.primes_file or 'sympy.primerange'}")
    print(f"[+] debug={DEBUG} assertions={ASSERTIONS}")
    print(f"[+] start time (UTC): {utc_now_iso()}\n")

    start_utc = utc_now_iso()
    t0 = time.time()

    with open(log_path, "a", encoding="utf-8") as logf:
        logf.write(
            f"{start_utc} START mode={config.mode} bound={bound} workers={config.workers} "
            f"executor={config.executor} exponent={config.exponent_strategy} backend={config.backend} "
            f"primes_file={args.primes_file} debug={DEBUG} assertions={ASSERTIONS}\n"
        )
        logf.flush()

        try:
            limit = table_limit(config.mode, bound)
            if args.primes_file:
                source = file_prime_source(args.primes_file)
            else:
                source = sympy_prime_source(limit)
            table = build_prime_table(source, bound, limit)
            logf.write(f"{utc_now_iso()} table primes={len(table)} max_prime={table.max_prime}\n")
            logf.flush()

            result = run_search(table, config, logf=logf, start_time=t0)
        except (ProductSearchError, OSError) as e:
            logf.write(f"{utc_now_iso()} ERROR mode={config.mode} bound={bound} error={e!r}\n")
            logf.flush()
            print(f"[!] ERROR: {e} (see {log_path})")
            return 1

        print("\n\n")
        runtime = time.time() - t0
        with open(results_path, "w", encoding="utf-8") as out_file:
            write_report(result.counterexamples, runtime, [sys.stdout, out_file])

        end_utc = utc_now_iso()
        logf.write(
            f"{end_utc} DONE mode={config.mode} bound={bound} "
            f"candidates={result.stats['candidates']} hits={len(result.counterexamples)} "
            f"runtime_sec={runtime:.3f}\n"
        )
        logf.flush()

    write_summary_json(
        path=summary_path,
        config=config,
        start_utc=start_utc,
        end_utc=end_utc,
        runtime_sec=runtime,
        env=ENV,
        primes_file=args.primes_file,
        results_file=results_path,
        log_file=log_path,
        stats=result.stats,
    )

    print(f"\n[+] {len(result.counterexamples)} counterexample(s); results in {results_path}")
    print(f"[+] Finished. End time (UTC): {utc_now_iso()}")
    return 0


if __name__ == "__main__":
    if sys.platform == "darwin":
        try:
            import multiprocessing as mp
            mp.set_start_method("fork")
        except RuntimeError:
            pass
    sys.exit(main())
