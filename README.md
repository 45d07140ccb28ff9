# dqlitekit

Building blocks for applications that run a replicated SQLite cluster.

| Module | What it provides |
| --- | --- |
| `dqlitekit.roles` | `NodeRole`, `NodeInfo`, `NodeMetadata`, `RolesConfig` and `RolesChanges`. Together they decide which nodes should be voters, stand-bys or spares. |
| `dqlitekit.store` | `NodeStore`, `YamlNodeStore`, `DatabaseNodeStore`, `default_node_store` and `NodeStoreError`. They persist the list of known node addresses. |
| `dqlitekit.files` | `file_exists`, `file_write`, `file_marshal`, `file_unmarshal`, `file_remove` and `FilesError`. They handle the state files in a node's data directory. |
| `dqlitekit.options` | `Options`, `TLSSetup` and `ConnSetup`, plus `is_ipv4` and `default_address`. |
| `dqlitekit.log` | `LogLevel`, plus the `discard_log` and `error_only_log` log functions. |
| `dqlitekit.proxy` | `proxy`, `set_keepalive`, `socketpair` and `ProxyError`. |
| `dqlitekit.tls` | `simple_tls_config`, `simple_listen_tls_config`, `simple_dial_tls_config` and `DialTLSConfig`. |
| `dqlitekit.dial` | `dial_func_with_tls`, `make_node_dial_func` and `ext_dial_func_with_proxy`. |
| `dqlitekit.bench_options` | `Workload`, `BenchmarkOptions` and `parse_workload`. |
| `dqlitekit.bench_tracker` | `Work`, `Measurement`, `MeasurementError`, `Report`, `Tracker` and `dur_to_ms`. |
| `dqlitekit.bench_worker` | `WorkerType`, `Worker`, `rand_seq` and `create_workers`. |

Installing the package also installs `pyyaml`, `psutil` and `cryptography`.

## Deciding roles

`RolesChanges` holds the cluster state in its `state` field. That field maps every `NodeInfo` to its `NodeMetadata`, or to `None` when the node is offline. The object answers three questions.

- `assume(node_id)`: should a node that is starting up take on the voter or stand-by role? It returns the role, or `None` if nothing should change.
- `handover(node_id)`: which role should a node that is shutting down give away, and which candidates should receive it? It returns a `(role, candidates)` pair, with the candidates in order of preference. The pair is `(None, [])` when nothing is to be done.
- `adjust(leader)`: what should the leader change so that the cluster reaches the configured number of voters and stand-bys? It returns a `(role, candidates)` pair in the same form.

Candidates are ordered as follows:

1. Candidates outside the failure domains already held by the relevant peers come first.
2. Within each of these two groups, lower weights come first.

`list(role, online)` and `count(role, online)` report the online or offline nodes that hold a given role.

```python
from dqlitekit.roles import NodeInfo, NodeMetadata, NodeRole, RolesChanges, RolesConfig

nodes = {
    NodeInfo(1, "10.0.0.1:9000", NodeRole.VOTER): NodeMetadata(failure_domain=0, weight=0),
    NodeInfo(2, "10.0.0.2:9000", NodeRole.VOTER): NodeMetadata(failure_domain=1, weight=0),
    NodeInfo(3, "10.0.0.3:9000", NodeRole.SPARE): NodeMetadata(failure_domain=2, weight=0),
}
changes = RolesChanges(RolesConfig(voters=3, stand_bys=3), nodes)
print(changes.assume(3))  # voter: there are fewer online voters than wanted
```

## Node stores

```python
from dqlitekit.roles import NodeInfo
from dqlitekit.store import default_node_store

store = default_node_store("cluster.yaml")
store.set([NodeInfo(address="10.0.0.1:9000"), NodeInfo(address="10.0.0.2:9000")])
print(store.get())
```

`default_node_store` chooses the store from the file name.

- **A name ending in `.yaml`** gives a `YamlNodeStore`.
  - Each write replaces the whole file atomically.
  - The file is written with mode 0600.
- **Any other name** gives a `DatabaseNodeStore`.
  - It uses the `address` column of a `main.servers` table in an SQLite file, and creates the table if it is missing.
  - The table rejects duplicate addresses.
  - Every node it returns has ID 1.
  - A failed `set` raises `NodeStoreError` and rolls back, so the previous contents stay in place.

## Node files and options

The `dqlitekit.files` helpers read and write files inside a directory.

- `file_write` writes atomically through a temporary file and `os.replace`.
- `file_marshal` and `file_unmarshal` store plain data as YAML.
- Failures raise `FilesError`.
- The module also defines the file names `INFO_FILE` (`info.yaml`), `STORE_FILE` (`cluster.yaml`) and `JOIN_FILE` (`join`).

`Options` holds node settings with these defaults:

| Setting | Default |
| --- | --- |
| voters | 3 |
| stand-bys | 3 |
| roles adjustment frequency | 30 seconds |
| log function | `error_only_log` |

`Options.validate()` raises `ValueError` unless `voters` is an odd number of at least 3.

`default_address()` returns the first IP address of the first non-loopback network interface, on port 9000. An IPv6 address is written in brackets. If no such interface exists, it raises `OSError`.

## Networking

`proxy(stop, remote, local, tls_context)` copies data in both directions between a TCP socket and a local socket.

- **Setup.** Before copying, it enables TCP keepalive on the TCP socket. With a TLS context it first wraps the TCP socket:
  - a server-side `ssl.SSLContext` makes it accept TLS;
  - a client-side context or a `DialTLSConfig` makes it start TLS.
- **Return.** It returns when either side closes or when the `stop` event is set. If copying failed in either direction, it raises `ProxyError`.

TLS setup:

- `simple_listen_tls_config` builds a server-side context from a certificate, a key and an optional CA file. The context requires TLS 1.2 or later and client certificates.
- `simple_dial_tls_config` builds a `DialTLSConfig`. Its server name is the first DNS name in the certificate.
- `simple_tls_config` returns both as a `(listen, dial)` pair.

Dial functions are called as `dial(address, timeout=None)` and return a connected socket.

- `dial_func_with_tls` wraps a dial function in TLS. If no server name is configured, it verifies the host part of the address.
- `make_node_dial_func` and `ext_dial_func_with_proxy` dial the remote end and start a proxy thread. They return one end of a Unix socket pair.

## Benchmarks

`create_workers(options)` builds `options.n_workers` workers of the kind the workload asks for. `BenchmarkOptions` accepts a `Workload` or a name:

- `"kvwrite"` gives writers, which insert random keys.
- `"kvreadwrite"` gives reader-writers, which mix writes with reads of keys they wrote earlier.
- Any other name means `kvwrite`.

A `Worker` runs against a DB-API connection that has a `model(key, value)` table. `do_work(db)` performs a single operation, and `run(db, stop)` repeats operations until the event is set.

Each worker records timings and errors in a `Tracker`. `report()` returns one `Report` per kind of work that had at least one successful operation. The text form of a report gives:

- the count and the error count;
- the average, maximum and minimum latency in milliseconds;
- every measurement;
- every error.

## What is not included

This package does not:

- start or embed a database node;
- speak the cluster's wire protocol, so it offers no client for finding a leader, changing roles or running queries on a cluster;
- drive a whole benchmark run against a live cluster, or write result files;
- provide command-line programs.

You supply the node, the client connection and the orchestration around the pieces above.