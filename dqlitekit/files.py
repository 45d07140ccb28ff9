"""Small helpers for the state files kept in a node's data directory."""

from __future__ import annotations

import os
import tempfile
from typing import Any

import yaml

INFO_FILE = "info.yaml"
"""Stores the node ID and address."""

STORE_FILE = "cluster.yaml"
"""The node store file."""

JOIN_FILE = "join"
"""Flag file signalling that a brand new node still has to join the cluster."""


class FilesError(Exception):
    """Raised when a state file cannot be checked, read or written."""


def file_exists(directory: str | os.PathLike, name: str) -> bool:
    """Return True if the given file exists in the given directory."""
    path = os.path.join(directory, name)
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise FilesError(f"check if {name} exists: {exc}") from exc
    return True


def file_write(directory: str | os.PathLike, name: str, data: bytes) -> None:
    """Atomically write data to a file with mode 0600."""
    path = os.path.join(directory, name)
    try:
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=f".{name}.")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp, 0o600)
            os.replace(tmp, path)
        except BaseException:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise
    except OSError as exc:
        raise FilesError(f"write {name}: {exc}") from exc


def file_marshal(directory: str | os.PathLike, name: str, obj: Any) -> None:
    """Serialize plain data as YAML into the given file."""
    try:
        data = yaml.safe_dump(obj).encode()
    except yaml.YAMLError as exc:
        raise FilesError(f"marshall {name}: {exc}") from exc
    file_write(directory, name, data)


def file_unmarshal(directory: str | os.PathLike, name: str) -> Any:
    """Load and return the YAML content of the given file."""
    path = os.path.join(directory, name)
    try:
        with open(path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        raise FilesError(f"read {name}: {exc}") from exc
    try:
        return yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise FilesError(f"unmarshall {name}: {exc}") from exc


def file_remove(directory: str | os.PathLike, name: str) -> None:
    """Remove a file in the given directory."""
    os.remove(os.path.join(directory, name))