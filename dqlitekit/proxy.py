"""Copy data between a remote TCP connection (possibly TLS) and a local socket."""

from __future__ import annotations

import queue
import socket
import ssl
import threading
from typing import Optional, Tuple, Union

from dqlitekit.tls import DialTLSConfig

# Keepalive option numbers; the fallbacks are the values from netinet/tcp.h
# on macOS, where the socket module may not expose them.
_TCP_KEEPINTVL = getattr(socket, "TCP_KEEPINTVL", 0x101)
_TCP_KEEPCNT = getattr(socket, "TCP_KEEPCNT", 0x102)
_TCP_KEEPIDLE = getattr(socket, "TCP_KEEPIDLE", getattr(socket, "TCP_KEEPALIVE", 0x10))
_TCP_USER_TIMEOUT = getattr(socket, "TCP_USER_TIMEOUT", None)

_KEEPALIVE_SECONDS = 3
_KEEPALIVE_PROBES = 3
_USER_TIMEOUT_MS = 30000

_CHUNK = 65536
_POLL_SECONDS = 0.05

_REMOTE_TO_LOCAL = "remote -> local"
_LOCAL_TO_REMOTE = "local -> remote"

TLSContext = Union[ssl.SSLContext, DialTLSConfig]
_Result = Tuple[str, Optional[BaseException]]


class ProxyError(Exception):
    """Errors hit while copying in one or both directions."""

    def __init__(self, first: object = None, second: object = None) -> None:
        self.first = first
        self.second = second
        super().__init__(str(self))

    def __str__(self) -> str:
        parts = []
        if self.first is not None:
            parts.append(f"first: {self.first}")
        if self.second is not None:
            parts.append(f"second: {self.second}")
        return " ".join(parts)


def set_keepalive(sock: socket.socket) -> None:
    """Enable TCP keepalive (3s idle, 3s interval, 3 probes) and a user timeout."""
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
    sock.setsockopt(socket.IPPROTO_TCP, _TCP_KEEPIDLE, _KEEPALIVE_SECONDS)
    sock.setsockopt(socket.IPPROTO_TCP, _TCP_KEEPCNT, _KEEPALIVE_PROBES)
    sock.setsockopt(socket.IPPROTO_TCP, _TCP_KEEPINTVL, _KEEPALIVE_SECONDS)
    if _TCP_USER_TIMEOUT is not None:
        # Limit how long transmitted data may stay unacknowledged, so that a
        # vanished peer is detected quickly.
        sock.setsockopt(socket.IPPROTO_TCP, _TCP_USER_TIMEOUT, _USER_TIMEOUT_MS)


def socketpair() -> Tuple[socket.socket, socket.socket]:
    """Return a pair of connected Unix stream sockets."""
    return socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)


def proxy(
    stop: threading.Event,
    remote: socket.socket,
    local: socket.socket,
    tls_context: Optional[TLSContext] = None,
) -> None:
    """Copy data both ways until a side closes, an error occurs or stop is set.

    A server-side ``ssl.SSLContext`` makes the remote end accept TLS; a
    client-side context or a ``DialTLSConfig`` makes it initiate TLS.
    Raises ProxyError if copying failed in either direction.
    """
    _require_tcp(remote)
    set_keepalive(remote)
    remote.settimeout(None)
    local.settimeout(None)
    remote = _wrap(remote, tls_context)

    results: "queue.Queue[_Result]" = queue.Queue()
    for tag, src, dst in (
        (_REMOTE_TO_LOCAL, remote, local),
        (_LOCAL_TO_REMOTE, local, remote),
    ):
        threading.Thread(target=_pump, args=(tag, src, dst, results), daemon=True).start()

    first = _wait(results, stop)
    if first is None:
        _force_close(remote, local, results, pending=2)
        return

    tag, err = first
    first_msg = f"{tag}: {err}" if err is not None else None
    # Stop reading on the side whose peer is still connected.
    _shutdown(local if tag == _REMOTE_TO_LOCAL else remote, socket.SHUT_RD)

    second = _wait(results, stop)
    if second is None:
        _force_close(remote, local, results, pending=1)
        return

    tag, err = second
    second_msg = f"{tag}: {err}" if err is not None else None
    _close(remote)
    _close(local)

    if first_msg is not None or second_msg is not None:
        raise ProxyError(first_msg, second_msg)


def _require_tcp(sock: socket.socket) -> None:
    if sock.family not in (socket.AF_INET, socket.AF_INET6) or sock.type != socket.SOCK_STREAM:
        raise ValueError("connection is not a TCP socket")


def _wrap(remote: socket.socket, tls_context: Optional[TLSContext]) -> socket.socket:
    if tls_context is None:
        return remote
    if isinstance(tls_context, DialTLSConfig):
        return tls_context.wrap(remote)
    server_side = tls_context.protocol == ssl.PROTOCOL_TLS_SERVER
    return tls_context.wrap_socket(remote, server_side=server_side)


def _pump(tag: str, src: socket.socket, dst: socket.socket, results: "queue.Queue[_Result]") -> None:
    try:
        while True:
            data = src.recv(_CHUNK)
            if not data:
                break
            dst.sendall(data)
    except Exception as exc:  # reported to the proxy, never raised in the thread
        results.put((tag, exc))
        return
    results.put((tag, None))


def _wait(results: "queue.Queue[_Result]", stop: threading.Event) -> Optional[_Result]:
    while True:
        try:
            return results.get(timeout=_POLL_SECONDS)
        except queue.Empty:
            if stop.is_set():
                return None


def _force_close(
    remote: socket.socket,
    local: socket.socket,
    results: "queue.Queue[_Result]",
    pending: int,
) -> None:
    _shutdown(remote, socket.SHUT_RDWR)
    _shutdown(local, socket.SHUT_RDWR)
    for _ in range(pending):
        results.get()
    _close(remote)
    _close(local)


def _shutdown(sock: socket.socket, how: int) -> None:
    # Bypass SSLSocket.shutdown, which would tear down the TLS state while
    # another thread may still be using it.
    try:
        socket.socket.shutdown(sock, how)
    except OSError:
        pass


def _close(sock: socket.socket) -> None:
    try:
        sock.close()
    except OSError:
        pass