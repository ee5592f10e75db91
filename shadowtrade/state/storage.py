"""
ShadowTrade Protocol State Storage

SQLite persistence for protocol-owned state. Amounts exceed 64 bits and
are stored as decimal text. External ledgers (payment token, asset vault)
are not persisted here.
"""

from __future__ import annotations
import json
import logging
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from shadowtrade.core.records import (
    AttestationRecord,
    PendingVerification,
    RevealRecord,
    RewardRecord,
    ShadowIdentity,
)
from shadowtrade.core.types import Address, CiphertextHandle
from shadowtrade.protocol.roles import Role

if TYPE_CHECKING:
    from shadowtrade.crypto.toolkit import LocalToolkit
    from shadowtrade.state.machine import ShadowProtocol

logger = logging.getLogger(__name__)


# Schema version for migrations
SCHEMA_VERSION = 1


CREATE_TABLES_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_info (
    key TEXT PRIMARY KEY,
    value TEXT
);

-- Owner, oracles, request-id counters
CREATE TABLE IF NOT EXISTS protocol_meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

-- Identity registry
CREATE TABLE IF NOT EXISTS identities (
    account BLOB PRIMARY KEY,
    handle BLOB NOT NULL,
    registered_at INTEGER NOT NULL
);

-- Reveal coordinator
CREATE TABLE IF NOT EXISTS reveal_records (
    account BLOB PRIMARY KEY,
    request_id INTEGER NOT NULL,
    requested_at INTEGER NOT NULL,
    revealed_proxy BLOB,
    revealed_at INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS finalized_decryptions (
    request_id INTEGER PRIMARY KEY
);

-- Trading engine
CREATE TABLE IF NOT EXISTS prices (
    asset BLOB PRIMARY KEY,
    price TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS balances (
    account BLOB NOT NULL,
    asset BLOB NOT NULL,
    amount TEXT NOT NULL,
    PRIMARY KEY (account, asset)
);

CREATE TABLE IF NOT EXISTS balance_totals (
    asset BLOB PRIMARY KEY,
    credited TEXT NOT NULL,
    withdrawn TEXT NOT NULL
);

-- Attestation registry
CREATE TABLE IF NOT EXISTS collections (
    collection BLOB PRIMARY KEY,
    reward_amount TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS pending_verifications (
    request_id INTEGER PRIMARY KEY,
    account BLOB NOT NULL,
    collection BLOB NOT NULL,
    requested_at INTEGER NOT NULL,
    complete INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS attestations (
    account BLOB NOT NULL,
    collection BLOB NOT NULL,
    verified INTEGER NOT NULL,
    verified_at INTEGER NOT NULL,
    request_id INTEGER NOT NULL,
    PRIMARY KEY (account, collection)
);

-- Reward ledger
CREATE TABLE IF NOT EXISTS rewards (
    account BLOB NOT NULL,
    collection BLOB NOT NULL,
    amount TEXT NOT NULL,
    recorded_at INTEGER NOT NULL,
    claimed INTEGER NOT NULL DEFAULT 0,
    claimed_at INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (account, collection)
);

-- Local toolkit ciphertexts (AES-GCM, key kept in the toolkit keyfile)
CREATE TABLE IF NOT EXISTS toolkit_ciphertexts (
    handle BLOB PRIMARY KEY,
    blob BLOB NOT NULL
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_reveal_proxy ON reveal_records(revealed_proxy);
CREATE INDEX IF NOT EXISTS idx_rewards_account ON rewards(account);
"""

SNAPSHOT_TABLES = [
    "protocol_meta",
    "identities",
    "reveal_records",
    "finalized_decryptions",
    "prices",
    "balances",
    "balance_totals",
    "collections",
    "pending_verifications",
    "attestations",
    "rewards",
]


@dataclass
class ProtocolStorage:
    """
    SQLite-based protocol storage.

    save() replaces the stored snapshot in one transaction; load() restores
    it into a freshly constructed ShadowProtocol.
    """
    db_path: str
    _conn: Optional[sqlite3.Connection] = None

    def __post_init__(self):
        self._conn = None

    def connect(self) -> None:
        """Open database connection and initialize schema."""
        if self._conn is not None:
            return

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(
            self.db_path,
            isolation_level=None,
            check_same_thread=False
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")

        self._init_schema()
        logger.info(f"Connected to protocol storage: {self.db_path}")

    def _init_schema(self) -> None:
        self._conn.executescript(CREATE_TABLES_SQL)

        row = self._conn.execute(
            "SELECT value FROM schema_info WHERE key = 'version'"
        ).fetchone()

        if row is None:
            self._conn.execute(
                "INSERT INTO schema_info (key, value) VALUES ('version', ?)",
                (str(SCHEMA_VERSION),)
            )
        elif int(row[0]) != SCHEMA_VERSION:
            raise RuntimeError(
                f"Unsupported storage schema version {row[0]}, expected {SCHEMA_VERSION}"
            )

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Closed protocol storage")

    def __enter__(self) -> "ProtocolStorage":
        self.connect()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _ensure_connected(self) -> None:
        if self._conn is None:
            self.connect()

    # =========================================================================
    # Snapshot
    # =========================================================================

    def has_snapshot(self) -> bool:
        self._ensure_connected()
        row = self._conn.execute(
            "SELECT value FROM protocol_meta WHERE key = 'owner'"
        ).fetchone()
        return row is not None

    def save(self, protocol: "ShadowProtocol") -> None:
        """Replace the stored snapshot with the protocol's current state."""
        self._ensure_connected()
        self._conn.execute("BEGIN TRANSACTION")
        try:
            for table in SNAPSHOT_TABLES:
                self._conn.execute(f"DELETE FROM {table}")
            self._write_meta(protocol)
            self._write_identities(protocol)
            self._write_reveal(protocol)
            self._write_trading(protocol)
            self._write_attestations(protocol)
            self._write_rewards(protocol)
        except Exception:
            self._conn.execute("ROLLBACK")
            raise
        self._conn.execute("COMMIT")

        logger.info(f"Saved protocol snapshot: {len(protocol.identities)} identities")

    def load(self, protocol: "ShadowProtocol") -> bool:
        """
        Restore a snapshot into protocol.

        Returns:
            False if the database holds no snapshot yet
        """
        if not self.has_snapshot():
            return False

        meta = self._read_meta()
        protocol.roles.load(
            Address.from_hex(meta["owner"]),
            {Address.from_hex(a) for a in json.loads(meta["oracles"])},
        )

        protocol.identities.load([
            (Address(account), ShadowIdentity(
                ciphertext_handle=CiphertextHandle(handle),
                is_registered=True,
                registered_at=registered_at,
            ))
            for account, handle, registered_at in self._conn.execute(
                "SELECT account, handle, registered_at FROM identities"
            )
        ])

        records = [
            RevealRecord(
                account=Address(account),
                request_id=request_id,
                requested_at=requested_at,
                revealed_proxy=Address(proxy) if proxy is not None else None,
                revealed_at=revealed_at,
            )
            for account, request_id, requested_at, proxy, revealed_at in self._conn.execute(
                """SELECT account, request_id, requested_at, revealed_proxy, revealed_at
                   FROM reveal_records"""
            )
        ]
        finalized = [row[0] for row in self._conn.execute(
            "SELECT request_id FROM finalized_decryptions"
        )]
        protocol.reveal.load(records, finalized, int(meta["decryption_next_id"]))

        protocol.trading.load_prices([
            (Address(asset), int(price))
            for asset, price in self._conn.execute("SELECT asset, price FROM prices")
        ])
        protocol.trading.balances.load(
            [
                (Address(account), Address(asset), int(amount))
                for account, asset, amount in self._conn.execute(
                    "SELECT account, asset, amount FROM balances"
                )
            ],
            [
                (Address(asset), int(credited), int(withdrawn))
                for asset, credited, withdrawn in self._conn.execute(
                    "SELECT asset, credited, withdrawn FROM balance_totals"
                )
            ],
        )

        protocol.attestations.load(
            [
                (Address(collection), int(amount))
                for collection, amount in self._conn.execute(
                    "SELECT collection, reward_amount FROM collections"
                )
            ],
            [
                PendingVerification(
                    request_id=request_id,
                    account=Address(account),
                    collection=Address(collection),
                    requested_at=requested_at,
                    complete=bool(complete),
                )
                for request_id, account, collection, requested_at, complete in self._conn.execute(
                    """SELECT request_id, account, collection, requested_at, complete
                       FROM pending_verifications"""
                )
            ],
            [
                AttestationRecord(
                    account=Address(account),
                    collection=Address(collection),
                    verified=bool(verified),
                    verified_at=verified_at,
                    request_id=request_id,
                )
                for account, collection, verified, verified_at, request_id in self._conn.execute(
                    """SELECT account, collection, verified, verified_at, request_id
                       FROM attestations"""
                )
            ],
            int(meta["verification_next_id"]),
        )

        protocol.rewards.load([
            RewardRecord(
                account=Address(account),
                collection=Address(collection),
                amount=int(amount),
                recorded_at=recorded_at,
                claimed=bool(claimed),
                claimed_at=claimed_at,
            )
            for account, collection, amount, recorded_at, claimed, claimed_at in self._conn.execute(
                """SELECT account, collection, amount, recorded_at, claimed, claimed_at
                   FROM rewards"""
            )
        ])

        logger.info(
            f"Loaded protocol snapshot saved at {meta.get('saved_at', '?')}: "
            f"{len(protocol.identities)} identities"
        )
        return True

    # =========================================================================
    # Writers
    # =========================================================================

    def _write_meta(self, protocol: "ShadowProtocol") -> None:
        meta = {
            "owner": protocol.owner.hex(),
            "oracles": json.dumps(sorted(a.hex() for a in protocol.roles.members(Role.ORACLE))),
            "decryption_next_id": str(protocol.reveal.next_request_id),
            "verification_next_id": str(protocol.attestations.next_request_id),
            "saved_at": str(int(time.time())),
        }
        self._conn.executemany(
            "INSERT INTO protocol_meta (key, value) VALUES (?, ?)",
            list(meta.items())
        )

    def _write_identities(self, protocol: "ShadowProtocol") -> None:
        self._conn.executemany(
            "INSERT INTO identities (account, handle, registered_at) VALUES (?, ?, ?)",
            [
                (account.data, identity.ciphertext_handle.data, identity.registered_at)
                for account, identity in protocol.identities.export()
            ]
        )

    def _write_reveal(self, protocol: "ShadowProtocol") -> None:
        records, finalized, _ = protocol.reveal.export()
        self._conn.executemany(
            """INSERT INTO reveal_records
               (account, request_id, requested_at, revealed_proxy, revealed_at)
               VALUES (?, ?, ?, ?, ?)""",
            [
                (
                    r.account.data,
                    r.request_id,
                    r.requested_at,
                    r.revealed_proxy.data if r.revealed_proxy else None,
                    r.revealed_at,
                )
                for r in records
            ]
        )
        self._conn.executemany(
            "INSERT INTO finalized_decryptions (request_id) VALUES (?)",
            [(rid,) for rid in finalized]
        )

    def _write_trading(self, protocol: "ShadowProtocol") -> None:
        book = protocol.trading.balances
        self._conn.executemany(
            "INSERT INTO prices (asset, price) VALUES (?, ?)",
            [(asset.data, str(price)) for asset, price in protocol.trading.export_prices()]
        )
        self._conn.executemany(
            "INSERT INTO balances (account, asset, amount) VALUES (?, ?, ?)",
            [(acct.data, asset.data, str(amount)) for acct, asset, amount in book.entries()]
        )
        self._conn.executemany(
            "INSERT INTO balance_totals (asset, credited, withdrawn) VALUES (?, ?, ?)",
            [(asset.data, str(c), str(w)) for asset, c, w in book.totals()]
        )

    def _write_attestations(self, protocol: "ShadowProtocol") -> None:
        pending, attestations, _ = protocol.attestations.export()
        self._conn.executemany(
            "INSERT INTO collections (collection, reward_amount) VALUES (?, ?)",
            [(c.data, str(amount)) for c, amount in protocol.attestations.collections()]
        )
        self._conn.executemany(
            """INSERT INTO pending_verifications
               (request_id, account, collection, requested_at, complete)
               VALUES (?, ?, ?, ?, ?)""",
            [
                (p.request_id, p.account.data, p.collection.data, p.requested_at, int(p.complete))
                for p in pending
            ]
        )
        self._conn.executemany(
            """INSERT INTO attestations
               (account, collection, verified, verified_at, request_id)
               VALUES (?, ?, ?, ?, ?)""",
            [
                (a.account.data, a.collection.data, int(a.verified), a.verified_at, a.request_id)
                for a in attestations
            ]
        )

    def _write_rewards(self, protocol: "ShadowProtocol") -> None:
        self._conn.executemany(
            """INSERT INTO rewards
               (account, collection, amount, recorded_at, claimed, claimed_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            [
                (r.account.data, r.collection.data, str(r.amount),
                 r.recorded_at, int(r.claimed), r.claimed_at)
                for r in protocol.rewards.export()
            ]
        )

    # =========================================================================
    # Toolkit ciphertexts
    # =========================================================================

    def save_ciphertexts(self, toolkit: "LocalToolkit") -> int:
        """Store ciphertexts not yet on disk; returns how many were added."""
        self._ensure_connected()
        before = self._conn.total_changes
        self._conn.execute("BEGIN TRANSACTION")
        try:
            self._conn.executemany(
                "INSERT OR IGNORE INTO toolkit_ciphertexts (handle, blob) VALUES (?, ?)",
                [(handle.data, blob) for handle, blob in toolkit.export_ciphertexts()]
            )
        except Exception:
            self._conn.execute("ROLLBACK")
            raise
        self._conn.execute("COMMIT")
        return self._conn.total_changes - before

    def load_ciphertexts(self, toolkit: "LocalToolkit") -> int:
        """Hand stored ciphertexts back to toolkit; returns how many."""
        self._ensure_connected()
        rows = self._conn.execute("SELECT handle, blob FROM toolkit_ciphertexts").fetchall()
        toolkit.load_ciphertexts([(CiphertextHandle(handle), blob) for handle, blob in rows])
        logger.debug(f"Loaded {len(rows)} toolkit ciphertexts")
        return len(rows)

    def _read_meta(self) -> Dict[str, str]:
        return dict(self._conn.execute("SELECT key, value FROM protocol_meta").fetchall())

    # =========================================================================
    # Utility Operations
    # =========================================================================

    def get_database_size(self) -> int:
        if self.db_path == ":memory:":
            return 0
        path = Path(self.db_path)
        if path.exists():
            return path.stat().st_size
        return 0

    def get_statistics(self) -> Dict[str, Any]:
        self._ensure_connected()
        stats: Dict[str, Any] = {"file_size_bytes": self.get_database_size()}
        for table in ("identities", "balances", "attestations", "rewards"):
            stats[f"{table}_count"] = self._conn.execute(
                f"SELECT COUNT(*) FROM {table}"
            ).fetchone()[0]
        return stats


def get_storage_info() -> dict:
    """Get information about protocol storage."""
    return {
        "backend": "SQLite",
        "schema_version": SCHEMA_VERSION,
        "tables": list(SNAPSHOT_TABLES),
    }
