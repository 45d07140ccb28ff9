"""Dial functions: TLS wrapping and dialing through a local proxy."""

from __future__ import annotations

import socket
import ssl
import threading
from typing import Callable, Optional, Tuple

from dqlitekit.proxy import proxy, socketpair
from dqlitekit.tls import DialTLSConfig

DialFunc = Callable[..., socket.socket]
"""Called as ``dial(address, timeout=None)``; returns a connected socket."""


def _split_host_port(address: str) -> Tuple[str, str]:
    if address.startswith("["):
        end = address.find("]")
        if end < 0:
            raise ValueError(f"address {address}: missing ']' in address")
        if address[end + 1 : end + 2] != ":":
            raise ValueError(f"address {address}: missing port in address")
        return address[1:end], address[end + 2 :]
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address {address}: missing port in address")
    if ":" in host:
        raise ValueError(f"address {address}: too many colons in address")
    return host, port


def _tcp_dial(address: str, timeout: Optional[float] = None) -> socket.socket:
    host, port = _split_host_port(address)
    try:
        port_number = int(port)
    except ValueError:
        raise ValueError(f"address {address}: invalid port") from None
    sock = socket.create_connection((host, port_number), timeout)
    sock.settimeout(None)
    return sock


def _config_for(tls_config: DialTLSConfig, address: str) -> DialTLSConfig:
    if tls_config.server_name:
        return tls_config
    host, _ = _split_host_port(address)
    return tls_config.with_server_name(host)


def _run_proxy(stop: threading.Event, remote: socket.socket, local: socket.socket, tls) -> None:
    try:
        proxy(stop, remote, local, tls)
    except (OSError, ValueError, ssl.SSLError):
        for sock in (remote, local):
            try:
                sock.close()
            except OSError:
                pass


def _start_proxy(stop: threading.Event, remote: socket.socket, local: socket.socket, tls) -> None:
    threading.Thread(target=_run_proxy, args=(stop, remote, local, tls), daemon=True).start()


def dial_func_with_tls(dial: DialFunc, tls_config: DialTLSConfig) -> DialFunc:
    """Wrap a dial function so that the connection it returns uses TLS.

    Without a configured server name the host part of the address is verified.
    """

    def tls_dial(address: str, timeout: Optional[float] = None) -> socket.socket:
        config = _config_for(tls_config, address)
        sock = dial(address, timeout)
        return config.wrap(sock)

    return tls_dial


def make_node_dial_func(stop: threading.Event, tls_config: DialTLSConfig) -> DialFunc:
    """Dial over TCP with TLS, handing back a Unix socket fed by a proxy."""

    def node_dial(address: str, timeout: Optional[float] = None) -> socket.socket:
        config = _config_for(tls_config, address)
        conn = _tcp_dial(address, timeout)
        try:
            go_unix, c_unix = socketpair()
        except OSError as exc:
            conn.close()
            raise OSError(f"create pair of Unix sockets: {exc}") from exc
        _start_proxy(stop, conn, go_unix, config)
        return c_unix

    return node_dial


def ext_dial_func_with_proxy(stop: threading.Event, dial_func: DialFunc) -> DialFunc:
    """Run the given dial function and proxy its connection to a Unix socket."""

    def ext_dial(address: str, timeout: Optional[float] = None) -> socket.socket:
        try:
            go_unix, c_unix = socketpair()
        except OSError as exc:
            raise OSError(f"create pair of Unix sockets: {exc}") from exc
        try:
            conn = dial_func(address, timeout)
        except BaseException:
            go_unix.close()
            c_unix.close()
            raise
        _start_proxy(stop, conn, go_unix, None)
        return c_unix

    return ext_dial