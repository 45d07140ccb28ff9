import socket
from types import SimpleNamespace
from unittest import mock

import pytest

from dqlitekit.log import error_only_log
from dqlitekit.options import Options, default_address, is_ipv4


def _addr(family, address):
    return SimpleNamespace(family=family, address=address)


def test_defaults():
    opts = Options()
    assert opts.voters == 3
    assert opts.stand_bys == 3
    assert opts.roles_adjustment_frequency == 30.0
    assert opts.disk_mode is False
    assert opts.log is error_only_log
    assert opts.cluster == []


def test_cluster_default_not_shared():
    first = Options()
    first.cluster.append("127.0.0.1:9001")
    assert Options().cluster == []


@pytest.mark.parametrize("voters", [1, 2, 4, 6])
def test_validate_rejects_bad_voters(voters):
    with pytest.raises(ValueError) as info:
        Options(voters=voters).validate()
    assert str(info.value) == (
        f"invalid voters {voters}: must be an odd number greater than 1"
    )


@pytest.mark.parametrize("voters", [3, 5, 7])
def test_validate_accepts_odd_voters(voters):
    opts = Options(voters=voters)
    assert opts.validate() is opts


@pytest.mark.parametrize(
    "ip,expected",
    [
        ("192.168.0.1", True),
        ("192.168.0.1:80", True),
        ("::FFFF:C0A8:1", False),
        ("::FFFF:C0A8:0001", False),
        ("0000:0000:0000:0000:0000:FFFF:C0A8:1", False),
        ("::FFFF:C0A8:1%1", False),
        ("::FFFF:192.168.0.1", False),
        ("[::FFFF:C0A8:1]:80", False),
        ("[::FFFF:C0A8:1%1]:80", False),
    ],
)
def test_is_ipv4(ip, expected):
    assert is_ipv4(ip) is expected


def test_default_address_skips_loopback():
    addrs = {
        "lo": [_addr(socket.AF_INET, "127.0.0.1")],
        "eth0": [_addr(socket.AF_INET, "10.0.0.5")],
    }
    stats = {
        "lo": SimpleNamespace(flags="up,loopback,running"),
        "eth0": SimpleNamespace(flags="up,broadcast,running"),
    }
    with mock.patch("psutil.net_if_addrs", return_value=addrs), mock.patch(
        "psutil.net_if_stats", return_value=stats
    ):
        assert default_address() == "10.0.0.5:9000"


def test_default_address_ipv6_is_bracketed():
    addrs = {"eth0": [_addr(socket.AF_INET6, "fe80::1%eth0")]}
    stats = {"eth0": SimpleNamespace(flags="up,running")}
    with mock.patch("psutil.net_if_addrs", return_value=addrs), mock.patch(
        "psutil.net_if_stats", return_value=stats
    ):
        assert default_address() == "[fe80::1]:9000"


def test_default_address_loopback_detected_without_flags():
    addrs = {
        "lo": [_addr(socket.AF_INET, "127.0.0.1")],
        "eth1": [_addr(socket.AF_INET, "192.168.0.1")],
    }
    stats = {"lo": SimpleNamespace(), "eth1": SimpleNamespace()}
    with mock.patch("psutil.net_if_addrs", return_value=addrs), mock.patch(
        "psutil.net_if_stats", return_value=stats
    ):
        assert default_address() == "192.168.0.1:9000"


def test_default_address_none_found():
    addrs = {
        "lo": [_addr(socket.AF_INET, "127.0.0.1")],
        "eth0": [],
    }
    stats = {
        "lo": SimpleNamespace(flags="up,loopback"),
        "eth0": SimpleNamespace(flags="up"),
    }
    with mock.patch("psutil.net_if_addrs", return_value=addrs), mock.patch(
        "psutil.net_if_stats", return_value=stats
    ):
        with pytest.raises(OSError, match="no suitable network interface"):
            default_address()