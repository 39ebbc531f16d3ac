# Core Module - SQLite Connection Helper
#
# The local vault backend opens a fresh connection per operation through
# `connect()`, so every connection gets the same PRAGMAs:
#
#   - WAL journal mode (concurrent readers + one writer)
#   - busy_timeout so concurrent PIN attempts wait instead of failing
#   - secure_delete so deleted secrets are overwritten on disk

import sqlite3
from pathlib import Path
from typing import Union


def connect(
    db_path: Union[str, Path],
    *,
    row_factory: bool = False,
    timeout: float = 5.0,
) -> sqlite3.Connection:
    """Open a SQLite connection with WAL mode and safe PRAGMAs.

    Args:
        db_path: Path to the database file.
        row_factory: If True, set conn.row_factory = sqlite3.Row.
        timeout: Seconds to wait on a locked database.

    Returns:
        sqlite3.Connection with WAL mode, busy_timeout and secure_delete.
    """
    conn = sqlite3.connect(str(db_path), timeout=timeout)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(f"PRAGMA busy_timeout={int(timeout * 1000)}")
    conn.execute("PRAGMA secure_delete=ON")
    if row_factory:
        conn.row_factory = sqlite3.Row
    return conn
