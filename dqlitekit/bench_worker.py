"""Benchmark workers issuing key-value reads and writes against a database."""

from __future__ import annotations

import random
import string
import threading
import time
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple

from dqlitekit.bench_options import BenchmarkOptions, Workload
from dqlitekit.bench_tracker import Report, Tracker, Work

KV_READ_SQL = "SELECT value FROM model WHERE key = ?"
KV_WRITE_SQL = "INSERT OR REPLACE INTO model(key, value) VALUES(?, ?)"

_LETTERS = string.ascii_lowercase + string.ascii_uppercase


class WorkerType(IntEnum):
    """What a worker does on each iteration."""

    KV_WRITER = 3
    KV_READER = 4
    KV_READER_WRITER = 5


def rand_seq(n: int) -> str:
    """Return a random string of n ASCII letters."""
    return "".join(random.choice(_LETTERS) for _ in range(n))


class Worker:
    """Runs queries against a DB-API connection and tracks their timings.

    ``kv_keys`` holds the keys this worker has successfully written.
    """

    def __init__(self, worker_type: WorkerType, options: BenchmarkOptions) -> None:
        self.worker_type = WorkerType(worker_type)
        self.kv_key_size = options.kv_key_size
        self.kv_value_size = options.kv_value_size
        self.tracker = Tracker()
        self.kv_keys: List[str] = []
        self.last_work = Work.NONE
        self.last_args: Tuple[Any, ...] = ()

    def _rand_new_key(self) -> str:
        return rand_seq(self.kv_key_size)

    def _rand_existing_key(self) -> str:
        if not self.kv_keys:
            raise LookupError("no keys")
        return random.choice(self.kv_keys)

    def _rand_value(self) -> str:
        # Half easily compressible, half random.
        half = self.kv_value_size // 2
        return rand_seq(1) * half + rand_seq(half)

    def get_work(self) -> Tuple[Work, str, Tuple[Any, ...]]:
        """Return the kind of work, its SQL statement and its arguments."""
        if self.worker_type == WorkerType.KV_WRITER:
            return Work.EXEC, KV_WRITE_SQL, (self._rand_new_key(), self._rand_value())
        if self.worker_type == WorkerType.KV_READER_WRITER:
            read = random.randrange(2) == 0
            if read and self.kv_keys:
                return Work.QUERY, KV_READ_SQL, (self._rand_existing_key(),)
            return Work.EXEC, KV_WRITE_SQL, (self._rand_new_key(), self._rand_value())
        return Work.NONE, "", ()

    def do_work(self, db: Any) -> None:
        """Pick the next piece of work and run it, recording time or error."""
        work, sql, args = self.get_work()
        self.last_work = work
        self.last_args = args

        if work == Work.EXEC:
            self.kv_keys.append(str(args[0]))
            start = time.time_ns()
            error: Optional[BaseException] = None
            try:
                cursor = db.cursor()
                cursor.execute(sql, args)
                db.commit()
            except Exception as exc:
                error = exc
                self.kv_keys.pop()
                try:
                    db.rollback()
                except Exception:
                    pass
            self.tracker.measure(start, work, error)
        elif work == Work.QUERY:
            start = time.time_ns()
            error = None
            try:
                cursor = db.cursor()
                cursor.execute(sql, args)
                row = cursor.fetchone()
                if row is None:
                    raise LookupError("no rows in result set")
                if not isinstance(row[0], str):
                    raise TypeError(f"unexpected value {row[0]!r}")
            except Exception as exc:
                error = exc
            self.tracker.measure(start, work, error)

    def run(self, db: Any, stop: threading.Event) -> None:
        """Do work repeatedly until stop is set."""
        while not stop.is_set():
            self.do_work(db)

    def report(self) -> Dict[Work, Report]:
        """Return the tracker's summary per kind of work."""
        return self.tracker.report()


def create_workers(options: BenchmarkOptions) -> List[Worker]:
    """Create the workers the options ask for."""
    worker_type = {
        Workload.KV_WRITE: WorkerType.KV_WRITER,
        Workload.KV_READ_WRITE: WorkerType.KV_READER_WRITER,
    }[Workload(options.workload)]
    return [Worker(worker_type, options) for _ in range(options.n_workers)]