"""Node roles, node stores, state files, TLS proxying and benchmark helpers for replicated SQLite clusters."""

__version__ = "0.1.0"

__all__ = [
    "bench_options",
    "bench_tracker",
    "bench_worker",
    "dial",
    "files",
    "log",
    "options",
    "proxy",
    "roles",
    "store",
    "tls",
]