"""Collect timings and errors of benchmark operations and summarise them."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional

_NS_PER_MS = 1_000_000
_MAX_DURATION = 2**63 - 1


class Work(IntEnum):
    """Type of operation performed against the database."""

    NONE = 0
    EXEC = 1
    QUERY = 2

    def __str__(self) -> str:
        return self.name.lower()


def dur_to_ms(duration_ns: int) -> str:
    """Format a duration in nanoseconds as milliseconds with six decimals."""
    ms, rest = divmod(duration_ns, _NS_PER_MS)
    return f"{ms}.{rest:06d}"


@dataclass(frozen=True)
class Measurement:
    """A successful operation: wall-clock start and duration, in nanoseconds."""

    start_ns: int
    duration_ns: int

    def __str__(self) -> str:
        return f"{self.start_ns} {dur_to_ms(self.duration_ns)}"


@dataclass(frozen=True)
class MeasurementError:
    """A failed operation: wall-clock start in nanoseconds and the error."""

    start_ns: int
    error: BaseException

    def __str__(self) -> str:
        return f"{self.start_ns} {self.error}"


@dataclass
class Report:
    """Summary of the measurements of one kind of work."""

    n: int = 0
    n_err: int = 0
    total_duration: int = 0
    avg_duration: int = 0
    max_duration: int = 0
    min_duration: int = _MAX_DURATION
    measurements: List[Measurement] = field(default_factory=list)
    errors: List[MeasurementError] = field(default_factory=list)

    def __str__(self) -> str:
        measurements = "".join(f"{m}\n" for m in self.measurements)
        errors = "".join(f"{e}\n" for e in self.errors)
        return (
            f"n {self.n}\n"
            f"n_err {self.n_err}\n"
            f"avg [ms] {dur_to_ms(self.avg_duration)}\n"
            f"max [ms] {dur_to_ms(self.max_duration)}\n"
            f"min [ms] {dur_to_ms(self.min_duration)}\n"
            f"measurements [timestamp in ns] [ms]\n{measurements}\n"
            f"errors\n{errors}\n"
        )


class Tracker:
    """Thread-safe record of operation timings and errors per kind of work."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._measurements: Dict[Work, List[Measurement]] = {}
        self._errors: Dict[Work, List[MeasurementError]] = {}

    def measure(self, start: int, work: Work, error: Optional[BaseException] = None) -> None:
        """Record an operation started at ``start`` (from time.time_ns()) that ends now."""
        with self._lock:
            duration = time.time_ns() - start
            if error is None:
                self._measurements.setdefault(work, []).append(Measurement(start, duration))
            else:
                self._errors.setdefault(work, []).append(MeasurementError(start, error))

    def report(self) -> Dict[Work, Report]:
        """Summarise each kind of work that has at least one successful measurement."""
        with self._lock:
            reports: Dict[Work, Report] = {}
            for work, measurements in self._measurements.items():
                errors = self._errors.get(work, [])
                durations = [m.duration_ns for m in measurements]
                report = Report(
                    n=len(measurements),
                    n_err=len(errors),
                    total_duration=sum(durations),
                    max_duration=max(durations, default=0),
                    min_duration=min(durations, default=_MAX_DURATION),
                    measurements=list(measurements),
                    errors=list(errors),
                )
                if report.n > 0:
                    report.avg_duration = report.total_duration // report.n
                reports[work] = report
            return reports