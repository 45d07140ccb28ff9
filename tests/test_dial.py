import datetime
import ipaddress
import socket
import threading

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from dqlitekit.dial import dial_func_with_tls, ext_dial_func_with_proxy, make_node_dial_func
from dqlitekit.tls import DialTLSConfig, simple_tls_config


def _make_cert(directory):
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "example.com")])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(key.public_key()), critical=False
        )
        .add_extension(
            x509.SubjectAlternativeName(
                [x509.DNSName("localhost"), x509.IPAddress(ipaddress.ip_address("127.0.0.1"))]
            ),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )
    cert_path = directory / "cluster.crt"
    key_path = directory / "cluster.key"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return cert_path, key_path


def _plain_dial(address, timeout=None):
    host, port = address.rsplit(":", 1)
    return socket.create_connection((host, int(port)), timeout)


def _recv_exact(sock, n):
    data = b""
    while len(data) < n:
        chunk = sock.recv(n - len(data))
        if not chunk:
            break
        data += chunk
    return data


def _tls_echo_server(listen):
    server = socket.create_server(("127.0.0.1", 0))
    received = {}

    def serve():
        conn, _ = server.accept()
        with listen.wrap_socket(conn, server_side=True) as tls:
            data = _recv_exact(tls, 4)
            received["data"] = data
            tls.sendall(data)
        server.close()

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    host, port = server.getsockname()
    return f"{host}:{port}", thread, received


def test_dial_func_with_tls_uses_configured_server_name(tmp_path):
    cert_path, key_path = _make_cert(tmp_path)
    listen, dial_config = simple_tls_config(cert_path, key_path, cert_path)
    address, thread, received = _tls_echo_server(listen)

    dial = dial_func_with_tls(_plain_dial, dial_config)
    with dial(address, 5) as conn:
        conn.sendall(b"ping")
        assert _recv_exact(conn, 4) == b"ping"
    thread.join(5)
    assert received == {"data": b"ping"}


def test_dial_func_with_tls_falls_back_to_address_host(tmp_path):
    cert_path, key_path = _make_cert(tmp_path)
    listen, dial_config = simple_tls_config(cert_path, key_path, cert_path)
    address, thread, _ = _tls_echo_server(listen)

    dial = dial_func_with_tls(_plain_dial, dial_config.with_server_name(""))
    with dial(address, 5) as conn:
        conn.sendall(b"abcd")
        assert _recv_exact(conn, 4) == b"abcd"
        assert conn.server_hostname == "127.0.0.1"
    thread.join(5)


def test_dial_func_with_tls_rejects_address_without_port(tmp_path):
    cert_path, key_path = _make_cert(tmp_path)
    _, dial_config = simple_tls_config(cert_path, key_path, cert_path)
    calls = []

    def recording_dial(address, timeout=None):
        calls.append(address)
        raise AssertionError("must not dial")

    dial = dial_func_with_tls(recording_dial, DialTLSConfig(dial_config.context, ""))
    with pytest.raises(ValueError, match="missing port"):
        dial("nohostport")
    assert calls == []


def test_make_node_dial_func_proxies_tls_to_unix_socket(tmp_path):
    cert_path, key_path = _make_cert(tmp_path)
    listen, dial_config = simple_tls_config(cert_path, key_path, cert_path)
    address, thread, received = _tls_echo_server(listen)
    stop = threading.Event()

    dial = make_node_dial_func(stop, dial_config)
    conn = dial(address, 5)
    conn.settimeout(5)
    try:
        assert conn.family == socket.AF_UNIX
        conn.sendall(b"ping")
        assert _recv_exact(conn, 4) == b"ping"
    finally:
        stop.set()
        conn.close()
    thread.join(5)
    assert received == {"data": b"ping"}


def test_ext_dial_func_with_proxy_forwards_and_stops():
    server = socket.create_server(("127.0.0.1", 0))
    host, port = server.getsockname()
    stop = threading.Event()

    dial = ext_dial_func_with_proxy(stop, _plain_dial)
    conn = dial(f"{host}:{port}", 5)
    conn.settimeout(5)
    accepted, _ = server.accept()
    accepted.settimeout(5)
    server.close()
    try:
        conn.sendall(b"ping")
        assert _recv_exact(accepted, 4) == b"ping"
        accepted.sendall(b"pong")
        assert _recv_exact(conn, 4) == b"pong"

        stop.set()
        assert accepted.recv(1) == b""
        assert conn.recv(1) == b""
    finally:
        conn.close()
        accepted.close()


def test_ext_dial_func_with_proxy_propagates_dial_errors():
    def failing_dial(address, timeout=None):
        raise ConnectionRefusedError("refused")

    dial = ext_dial_func_with_proxy(threading.Event(), failing_dial)
    with pytest.raises(ConnectionRefusedError, match="refused"):
        dial("127.0.0.1:1")