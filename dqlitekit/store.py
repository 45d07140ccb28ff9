"""Stores holding the addresses of the dqlite nodes a client may dial."""

from __future__ import annotations

import abc
import os
import sqlite3
import threading
from typing import Any, Iterable, List

import yaml

from dqlitekit.files import FilesError, file_write
from dqlitekit.roles import NodeInfo, NodeRole


class NodeStoreError(Exception):
    """Raised when a node store cannot be read or updated."""


class NodeStore(abc.ABC):
    """Source of the initial list of candidate nodes to dial."""

    @abc.abstractmethod
    def get(self) -> List[NodeInfo]:
        """Return the current nodes."""

    @abc.abstractmethod
    def set(self, servers: Iterable[NodeInfo]) -> None:
        """Replace the stored nodes."""


class DatabaseNodeStore(NodeStore):
    """Persists node addresses in a column of an SQLite table."""

    def __init__(
        self,
        db: sqlite3.Connection,
        schema: str,
        table: str,
        column: str,
        where: str = "",
    ) -> None:
        self._db = db
        self._schema = schema
        self._table = table
        self._column = column
        self._where = where
        self._lock = threading.Lock()

    def get(self) -> List[NodeInfo]:
        """Return the stored nodes; every node gets ID 1."""
        query = f"SELECT {self._column} FROM {self._schema}.{self._table}"
        if self._where:
            query += " WHERE " + self._where
        with self._lock:
            try:
                rows = self._db.execute(query).fetchall()
            except sqlite3.Error as exc:
                raise NodeStoreError(f"failed to query servers table: {exc}") from exc
        servers = []
        for (address,) in rows:
            if not isinstance(address, str):
                raise NodeStoreError(
                    f"failed to fetch server address: unexpected value {address!r}"
                )
            servers.append(NodeInfo(id=1, address=address))
        return servers

    def set(self, servers: Iterable[NodeInfo]) -> None:
        """Replace the stored addresses in a single transaction."""
        servers = list(servers)
        with self._lock:
            try:
                if not self._db.in_transaction:
                    self._db.execute("BEGIN")
            except sqlite3.Error as exc:
                raise NodeStoreError(f"failed to begin transaction: {exc}") from exc
            try:
                self._replace(servers)
            except BaseException:
                self._db.rollback()
                raise
            try:
                self._db.commit()
            except sqlite3.Error as exc:
                raise NodeStoreError(f"failed to commit transaction: {exc}") from exc

    def _replace(self, servers: List[NodeInfo]) -> None:
        try:
            self._db.execute(f"DELETE FROM {self._schema}.{self._table}")
        except sqlite3.Error as exc:
            raise NodeStoreError(f"failed to delete existing servers rows: {exc}") from exc
        insert = (
            f"INSERT INTO {self._schema}.{self._table}({self._column}) VALUES (?)"
        )
        for server in servers:
            try:
                self._db.execute(insert, (server.address,))
            except sqlite3.Error as exc:
                raise NodeStoreError(
                    f"failed to insert server {server.address}: {exc}"
                ) from exc


def _node_to_yaml(node: NodeInfo) -> dict:
    return {"ID": node.id, "Address": node.address, "Role": int(node.role)}


def _node_from_yaml(item: Any) -> NodeInfo:
    if not isinstance(item, dict):
        raise NodeStoreError(f"invalid node entry: {item!r}")
    try:
        return NodeInfo(
            id=int(item.get("ID", 0)),
            address=str(item.get("Address", "")),
            role=NodeRole(int(item.get("Role", 0))),
        )
    except (TypeError, ValueError) as exc:
        raise NodeStoreError(f"invalid node entry {item!r}: {exc}") from exc


class YamlNodeStore(NodeStore):
    """Persists the list of nodes in a YAML file."""

    def __init__(self, path: str | os.PathLike) -> None:
        self._path = os.fspath(path)
        self._lock = threading.RLock()
        self._servers: List[NodeInfo] = []
        try:
            with open(self._path, "rb") as handle:
                data = handle.read()
        except FileNotFoundError:
            return
        try:
            loaded = yaml.safe_load(data)
        except yaml.YAMLError as exc:
            raise NodeStoreError(f"parse {self._path}: {exc}") from exc
        if loaded is None:
            return
        if not isinstance(loaded, list):
            raise NodeStoreError(f"parse {self._path}: expected a list of nodes")
        self._servers = [_node_from_yaml(item) for item in loaded]

    def get(self) -> List[NodeInfo]:
        """Return a copy of the stored nodes."""
        with self._lock:
            return list(self._servers)

    def set(self, servers: Iterable[NodeInfo]) -> None:
        """Atomically rewrite the file, then update the in-memory list."""
        servers = list(servers)
        data = yaml.safe_dump([_node_to_yaml(node) for node in servers]).encode()
        directory = os.path.dirname(self._path) or "."
        name = os.path.basename(self._path)
        with self._lock:
            try:
                file_write(directory, name, data)
            except FilesError as exc:
                raise NodeStoreError(str(exc)) from exc
            self._servers = servers


def default_node_store(filename: str) -> NodeStore:
    """Open a YAML store for ``*.yaml`` names, otherwise an SQLite one.

    The SQLite store uses the ``main.servers`` table and its ``address``
    column, creating the table if needed.
    """
    if filename.endswith(".yaml"):
        return YamlNodeStore(filename)
    try:
        db = sqlite3.connect(filename, check_same_thread=False)
    except sqlite3.Error as exc:
        raise NodeStoreError(f"failed to open database: {exc}") from exc
    try:
        db.execute("CREATE TABLE IF NOT EXISTS servers (address TEXT, UNIQUE(address))")
        db.commit()
    except sqlite3.Error as exc:
        db.close()
        raise NodeStoreError(f"failed to create servers table: {exc}") from exc
    return DatabaseNodeStore(db, "main", "servers", "address")