# Vault - Local SQLite Backend
#
# Local encrypted file store for running without a managed vault.
# Every value is sealed with AES-256-GCM before it touches disk; the
# secret name is bound as associated data so ciphertexts cannot be
# swapped between rows. Tags are stored as plain JSON (they hold only
# the obfuscated user id, category, key and timestamps).
#
# Each row carries an integer version so compare_and_set() can be a single
# conditional UPDATE. Versions come from secret_versions, which outlives
# deletes, so a recreated name never reuses a version a stale writer holds.

import json
import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Dict, List, Optional, Union

from cryptography.exceptions import InvalidTag

from ...core.db import connect as db_connect
from ..encryption import EncryptionService
from ..exceptions import StoreError, StoreUnavailable, VersionConflict
from .base import SecretBackend, SecretProperties, StoredSecret, matches_tags

logger = logging.getLogger(__name__)


class SQLiteBackend(SecretBackend):
    """Encrypted SQLite secret store.

    Args:
        db_path: Path to the SQLite file (parent directories are created).
        key: 32-byte AES key sealing stored values.
    """

    name = "sqlite"
    supports_cas = True

    def __init__(self, db_path: Union[str, Path], key: bytes):
        if len(key) != EncryptionService.KEY_LENGTH:
            raise StoreUnavailable(
                f"Vault key must be {EncryptionService.KEY_LENGTH} bytes, got {len(key)}"
            )
        self.db_path = Path(db_path)
        self._key = key
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_database()
        except (OSError, sqlite3.Error) as e:
            raise StoreUnavailable(f"Cannot open vault database {self.db_path}: {e}") from e

    def _init_database(self):
        with closing(db_connect(self.db_path)) as conn, conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS secrets (
                    name TEXT PRIMARY KEY,
                    nonce TEXT NOT NULL,
                    ciphertext TEXT NOT NULL,
                    tags TEXT NOT NULL DEFAULT '{}',
                    version INTEGER NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS secret_versions (
                    name TEXT PRIMARY KEY,
                    version INTEGER NOT NULL
                )
            """)
            conn.execute(
                "INSERT OR IGNORE INTO secret_versions (name, version) "
                "SELECT name, version FROM secrets"
            )

    def _connect(self) -> sqlite3.Connection:
        try:
            return db_connect(self.db_path, row_factory=True)
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot open vault database {self.db_path}: {e}") from e

    def _seal(self, name: str, value: str):
        nonce, ciphertext = EncryptionService.encrypt(value, self._key, name.encode("utf-8"))
        return (
            EncryptionService.encode_for_storage(nonce),
            EncryptionService.encode_for_storage(ciphertext),
        )

    def _unseal(self, row) -> str:
        try:
            return EncryptionService.decrypt(
                EncryptionService.decode_from_storage(row["nonce"]),
                EncryptionService.decode_from_storage(row["ciphertext"]),
                self._key,
                row["name"].encode("utf-8"),
            )
        except InvalidTag as e:
            raise StoreError(
                f"Secret {row['name']!r} failed authentication (wrong vault key or tampered row)"
            ) from e

    def _execute(self, operation):
        """Run operation(conn) in a transaction, mapping sqlite errors."""
        try:
            with closing(self._connect()) as conn, conn:
                return operation(conn)
        except sqlite3.OperationalError as e:
            raise StoreUnavailable(f"Vault database unavailable: {e}") from e
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as e:
            raise StoreError(f"Vault database error: {e}") from e

    @staticmethod
    def _next_version(conn: sqlite3.Connection, name: str) -> int:
        conn.execute(
            """
            INSERT INTO secret_versions (name, version) VALUES (?, 1)
            ON CONFLICT(name) DO UPDATE SET version = secret_versions.version + 1
            """,
            (name,),
        )
        return conn.execute(
            "SELECT version FROM secret_versions WHERE name = ?", (name,)
        ).fetchone()[0]

    def set(self, name: str, value: str, tags: Optional[Dict[str, str]] = None) -> StoredSecret:
        nonce, ciphertext = self._seal(name, value)
        tags_json = json.dumps(tags or {})

        def op(conn):
            version = self._next_version(conn, name)
            conn.execute(
                """
                INSERT INTO secrets (name, nonce, ciphertext, tags, version, updated_at)
                VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(name) DO UPDATE SET
                    nonce = excluded.nonce,
                    ciphertext = excluded.ciphertext,
                    tags = excluded.tags,
                    version = excluded.version,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (name, nonce, ciphertext, tags_json, version),
            )
            return version

        version = self._execute(op)
        return StoredSecret(name=name, value=value, tags=dict(tags or {}), version=str(version))

    def get(self, name: str) -> Optional[StoredSecret]:
        row = self._execute(
            lambda conn: conn.execute(
                "SELECT name, nonce, ciphertext, tags, version FROM secrets WHERE name = ?",
                (name,),
            ).fetchone()
        )
        if row is None:
            return None
        return StoredSecret(
            name=row["name"],
            value=self._unseal(row),
            tags=json.loads(row["tags"]),
            version=str(row["version"]),
        )

    def delete(self, name: str) -> bool:
        deleted = self._execute(
            lambda conn: conn.execute("DELETE FROM secrets WHERE name = ?", (name,)).rowcount
        )
        return deleted > 0

    def list_properties(self, tag_filter: Optional[Dict[str, str]] = None) -> List[SecretProperties]:
        rows = self._execute(
            lambda conn: conn.execute(
                "SELECT name, tags, version FROM secrets ORDER BY name"
            ).fetchall()
        )
        results = []
        for row in rows:
            tags = json.loads(row["tags"])
            if matches_tags(tags, tag_filter):
                results.append(SecretProperties(name=row["name"], tags=tags, version=str(row["version"])))
        return results

    def compare_and_set(
        self,
        name: str,
        value: str,
        tags: Optional[Dict[str, str]],
        expected_version: Optional[str],
    ) -> StoredSecret:
        nonce, ciphertext = self._seal(name, value)
        tags_json = json.dumps(tags or {})

        if expected_version is None:
            def insert(conn):
                version = self._next_version(conn, name)
                conn.execute(
                    "INSERT INTO secrets (name, nonce, ciphertext, tags, version) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (name, nonce, ciphertext, tags_json, version),
                )
                return version

            try:
                version = self._execute(insert)
            except sqlite3.IntegrityError:
                raise VersionConflict(name, expected_version)
            return StoredSecret(name=name, value=value, tags=dict(tags or {}), version=str(version))

        def update(conn):
            version = self._next_version(conn, name)
            updated = conn.execute(
                """
                UPDATE secrets
                SET nonce = ?, ciphertext = ?, tags = ?, version = ?, updated_at = CURRENT_TIMESTAMP
                WHERE name = ? AND version = ?
                """,
                (nonce, ciphertext, tags_json, version, name, int(expected_version)),
            ).rowcount
            if updated == 0:
                # Rolls back the version bump with the transaction
                raise VersionConflict(name, expected_version)
            return version

        version = self._execute(update)
        return StoredSecret(name=name, value=value, tags=dict(tags or {}), version=str(version))
