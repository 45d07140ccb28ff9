"""Settings of an application node and network address helpers."""

from __future__ import annotations

import ipaddress
import queue
import socket
import ssl
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import psutil

from dqlitekit.log import LogFunc, error_only_log

DEFAULT_PORT = 9000


@dataclass
class TLSSetup:
    """TLS contexts for accepting and for establishing connections."""

    listen: ssl.SSLContext
    dial: ssl.SSLContext


@dataclass
class ConnSetup:
    """External dial function plus the queue of externally accepted sockets."""

    dial_func: Callable[..., socket.socket]
    accept_queue: "queue.Queue[socket.socket]"


@dataclass
class Options:
    """Parameters of an application node, with the stock defaults."""

    address: str = ""
    cluster: List[str] = field(default_factory=list)
    log: LogFunc = error_only_log
    tls: Optional[TLSSetup] = None
    conn: Optional[ConnSetup] = None
    voters: int = 3
    stand_bys: int = 3
    roles_adjustment_frequency: float = 30.0
    failure_domain: int = 0
    network_latency: float = 0.0
    unix_socket: str = ""
    snapshot_params: Optional[Any] = None
    disk_mode: bool = False

    def validate(self) -> "Options":
        """Check the settings, returning self; raise ValueError if invalid."""
        if self.voters < 3 or self.voters % 2 == 0:
            raise ValueError(
                f"invalid voters {self.voters}: must be an odd number greater than 1"
            )
        return self


def is_ipv4(ip: str) -> bool:
    """Tell IPv4 notations (optionally with a port) from IPv6 ones."""
    return ip.count(":") < 2


def _is_loopback(name: str, addresses: list, stats: dict) -> bool:
    stat = stats.get(name)
    flags = getattr(stat, "flags", None)
    if isinstance(flags, str) and flags:
        return "loopback" in flags.split(",")
    for entry in addresses:
        if entry.family in (socket.AF_INET, socket.AF_INET6):
            try:
                if ipaddress.ip_address(entry.address.split("%", 1)[0]).is_loopback:
                    return True
            except ValueError:
                continue
    return False


def default_address() -> str:
    """Return the first IP of the first non-loopback interface, on port 9000."""
    interfaces = psutil.net_if_addrs()
    stats = psutil.net_if_stats()
    for name, addresses in interfaces.items():
        if _is_loopback(name, addresses, stats):
            continue
        ips = [
            entry.address.split("%", 1)[0]
            for entry in addresses
            if entry.family in (socket.AF_INET, socket.AF_INET6)
        ]
        if not ips:
            continue
        ip = ips[0]
        if is_ipv4(ip):
            return f"{ip}:{DEFAULT_PORT}"
        return f"[{ip}]:{DEFAULT_PORT}"
    raise OSError("no suitable network interface found")