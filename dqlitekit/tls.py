"""TLS configurations with sane defaults for mutually authenticated nodes."""

from __future__ import annotations

import dataclasses
import os
import socket
import ssl
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from cryptography import x509

PathLike = Union[str, "os.PathLike[str]"]


@dataclass(frozen=True)
class DialTLSConfig:
    """Client-side TLS context plus the server name to verify."""

    context: ssl.SSLContext
    server_name: str = ""

    def with_server_name(self, name: str) -> "DialTLSConfig":
        """Return a copy using the given server name."""
        return dataclasses.replace(self, server_name=name)

    def wrap(self, sock: socket.socket) -> ssl.SSLSocket:
        """Start TLS as a client on the given socket."""
        return self.context.wrap_socket(sock, server_hostname=self.server_name or None)


def _load_trust(context: ssl.SSLContext, cafile: Optional[PathLike]) -> None:
    if cafile is None:
        context.load_default_certs()
    else:
        context.load_verify_locations(cafile=os.fspath(cafile))


def simple_listen_tls_config(
    certfile: PathLike, keyfile: PathLike, cafile: Optional[PathLike] = None
) -> ssl.SSLContext:
    """Server-side context: TLS 1.2 or later, client certificates required."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.load_cert_chain(os.fspath(certfile), os.fspath(keyfile))
    _load_trust(context, cafile)
    context.verify_mode = ssl.CERT_REQUIRED
    return context


def simple_dial_tls_config(
    certfile: PathLike, keyfile: PathLike, cafile: Optional[PathLike] = None
) -> DialTLSConfig:
    """Client-side config whose server name is the certificate's first DNS name."""
    with open(certfile, "rb") as handle:
        data = handle.read()
    try:
        cert = x509.load_pem_x509_certificate(data)
    except ValueError as exc:
        raise ValueError(f"parse certificate: {exc}") from exc
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        dns_names = san.value.get_values_for_type(x509.DNSName)
    except x509.ExtensionNotFound:
        dns_names = []
    if not dns_names:
        raise ValueError("certificate has no DNS extension")

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    _load_trust(context, cafile)
    context.load_cert_chain(os.fspath(certfile), os.fspath(keyfile))
    return DialTLSConfig(context=context, server_name=dns_names[0])


def simple_tls_config(
    certfile: PathLike, keyfile: PathLike, cafile: Optional[PathLike] = None
) -> Tuple[ssl.SSLContext, DialTLSConfig]:
    """Return the (listen, dial) pair built from the same key pair and CA."""
    listen = simple_listen_tls_config(certfile, keyfile, cafile)
    dial = simple_dial_tls_config(certfile, keyfile, cafile)
    return listen, dial