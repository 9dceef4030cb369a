"""Relational pattern index on SQLite: one pickled row per sentence."""

import logging
import pickle
import re
import sqlite3
from typing import Iterable, List, Optional

from ..config import SurfacePatternConfig
from ..errors import ConfigurationError
from .base import PatternsForEachToken, SentencePatterns, StoreWay, TokenPatterns

logger = logging.getLogger(__name__)

# Bulk lookups are issued in IN-clauses of these sizes
BATCH_TIERS = (51, 11, 4, 1)

_TABLE_NAME_RE = re.compile(r"^[a-z_][a-z0-9_]*$")


class PatternsForEachTokenDB(PatternsForEachToken):
    """Pattern index stored in a SQLite table ``(sentid, patterns)``.

    Every operation opens its own connection and commits explicitly.

    Parameters
    ----------
    config : SurfacePatternConfig
        ``db_url`` is the database file, ``table_name`` the table.
        ``create_table`` (which requires ``delete_existing``) recreates it;
        otherwise the table must already exist.
    patterns : Optional[SentencePatterns]
        Initial content
    """

    store_way = StoreWay.DB

    def __init__(self, config: SurfacePatternConfig, patterns: Optional[SentencePatterns] = None):
        if not config.db_url:
            raise ConfigurationError("db_url is required for the DB pattern store")
        self.db_path = config.db_url
        self.table_name = config.table_name.lower()
        if not _TABLE_NAME_RE.match(self.table_name):
            raise ConfigurationError(f"Invalid table name: {config.table_name!r}")

        if config.create_table and not config.delete_existing:
            raise ConfigurationError("Cannot create the table without deleting the existing one")
        if config.create_table:
            self.create_table()
        elif config.delete_existing:
            raise ConfigurationError("delete_existing requires create_table")
        elif not self.table_exists():
            raise ConfigurationError(
                f"Table {self.table_name} does not exist in {self.db_path}; set create_table"
            )
        if patterns:
            self.add_patterns_batch(patterns)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path), timeout=30)

    def table_exists(self) -> bool:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
                (self.table_name,),
            ).fetchone()
            return row is not None
        finally:
            conn.close()

    def create_table(self) -> None:
        conn = self._connect()
        try:
            conn.execute(f"DROP TABLE IF EXISTS {self.table_name}")
            conn.execute(
                f"CREATE TABLE {self.table_name} (sentid TEXT PRIMARY KEY, patterns BLOB)"
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Created table %s in %s", self.table_name, self.db_path)

    def add_patterns(self, sent_id: str, token_patterns: TokenPatterns) -> None:
        self.add_patterns_batch({sent_id: token_patterns})

    def add_patterns_batch(self, sent_patterns: SentencePatterns) -> None:
        if not sent_patterns:
            return
        rows = [
            (sent_id, pickle.dumps(token_patterns, protocol=pickle.HIGHEST_PROTOCOL))
            for sent_id, token_patterns in sent_patterns.items()
        ]
        conn = self._connect()
        try:
            conn.executemany(
                f"INSERT INTO {self.table_name} (sentid, patterns) VALUES (?, ?) "
                "ON CONFLICT(sentid) DO UPDATE SET patterns = excluded.patterns",
                rows,
            )
            conn.commit()
        finally:
            conn.close()

    def get_patterns_for_all_tokens(self, sent_id: str) -> TokenPatterns:
        conn = self._connect()
        try:
            row = conn.execute(
                f"SELECT patterns FROM {self.table_name} WHERE sentid = ?", (sent_id,)
            ).fetchone()
        finally:
            conn.close()
        return pickle.loads(row[0]) if row is not None else {}

    def get_patterns_for_sentences(self, sent_ids: Iterable[str]) -> SentencePatterns:
        remaining: List[str] = list(dict.fromkeys(sent_ids))
        result: SentencePatterns = {sent_id: {} for sent_id in remaining}
        conn = self._connect()
        try:
            while remaining:
                size = next(tier for tier in BATCH_TIERS if tier <= len(remaining))
                batch, remaining = remaining[:size], remaining[size:]
                placeholders = ", ".join("?" * size)
                for sent_id, blob in conn.execute(
                    f"SELECT sentid, patterns FROM {self.table_name} WHERE sentid IN ({placeholders})",
                    batch,
                ):
                    result[sent_id] = pickle.loads(blob)
        finally:
            conn.close()
        return result

    def contains_sent_id(self, sent_id: str) -> bool:
        conn = self._connect()
        try:
            row = conn.execute(
                f"SELECT 1 FROM {self.table_name} WHERE sentid = ?", (sent_id,)
            ).fetchone()
        finally:
            conn.close()
        return row is not None

    def create_index_if_using_db_and_not_exists(self) -> None:
        index_name = f"{self.table_name}_index"
        conn = self._connect()
        try:
            conn.execute(f"CREATE INDEX IF NOT EXISTS {index_name} ON {self.table_name} (sentid)")
            conn.commit()
        except sqlite3.OperationalError as e:
            # another process created it between the check and the create
            logger.info("Index %s not created: %s", index_name, e)
        finally:
            conn.close()

    def size(self) -> int:
        conn = self._connect()
        try:
            return conn.execute(f"SELECT COUNT(*) FROM {self.table_name}").fetchone()[0]
        finally:
            conn.close()
