"""Settings of a benchmark run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Union


class Workload(IntEnum):
    """Kind of load the benchmark workers generate."""

    KV_WRITE = 0
    KV_READ_WRITE = 1


def parse_workload(name: str) -> Workload:
    """Map a workload name (case-insensitive) to a Workload; unknown means KV_WRITE."""
    return {
        "kvwrite": Workload.KV_WRITE,
        "kvreadwrite": Workload.KV_READ_WRITE,
    }.get(name.lower(), Workload.KV_WRITE)


@dataclass
class BenchmarkOptions:
    """Parameters of a benchmark run; durations are in seconds.

    ``workload`` may also be given by name, as accepted by parse_workload.
    """

    cluster: List[str] = field(default_factory=list)
    cluster_timeout: float = 60.0
    workload: Union[Workload, str] = Workload.KV_WRITE
    duration: float = 60.0
    n_workers: int = 1
    kv_key_size: int = 32
    kv_value_size: int = 1024

    def __post_init__(self) -> None:
        if isinstance(self.workload, str):
            self.workload = parse_workload(self.workload)
        else:
            self.workload = Workload(self.workload)