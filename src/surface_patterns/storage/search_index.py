"""Pattern index kept in a SQLite FTS5 full-text table.

Each sentence is one document: a searchable ``sentid`` column and an
unindexed column holding the pickled per-token pattern map. Writes go
through one writer connection per index file, shared by every backend
instance built on the same ``IndexWriterPool``, and become visible to
readers only after ``setup_search`` (or ``close``) commits them.
"""

import logging
import pickle
import re
import sqlite3
import threading
from pathlib import Path
from typing import Dict, Optional

from ..config import SEARCH_INDEX_FILE_NAME, SurfacePatternConfig
from ..errors import ConfigurationError
from .base import PatternsForEachToken, SentencePatterns, StoreWay, TokenPatterns

logger = logging.getLogger(__name__)

TABLE_NAME = "sentence_patterns"


def _match_query(sent_id: str) -> str:
    return 'sentid : "' + sent_id.replace('"', '""') + '"'


def _find_rowid(conn: sqlite3.Connection, sent_id: str) -> Optional[int]:
    if re.search(r"\w", sent_id):
        rows = conn.execute(
            f"SELECT rowid FROM {TABLE_NAME} WHERE {TABLE_NAME} MATCH ? AND sentid = ?",
            (_match_query(sent_id), sent_id),
        ).fetchall()
    else:
        rows = conn.execute(
            f"SELECT rowid FROM {TABLE_NAME} WHERE sentid = ?", (sent_id,)
        ).fetchall()
    return rows[0][0] if rows else None


class IndexWriter:
    """The single writer connection of one index file.

    The connection is opened lazily and guarded by a lock and an explicit
    open flag, so it can be closed and reopened by any of its users.
    """

    def __init__(self, index_path: Path):
        self.index_path = index_path
        self._conn: Optional[sqlite3.Connection] = None
        self._open = False
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._open

    def _connection(self) -> sqlite3.Connection:
        # caller holds _lock
        if not self._open:
            self._conn = sqlite3.connect(str(self.index_path), timeout=30, check_same_thread=False)
            self._conn.execute(
                f"CREATE VIRTUAL TABLE IF NOT EXISTS {TABLE_NAME} USING fts5(sentid, patterns UNINDEXED)"
            )
            self._conn.commit()
            self._open = True
        return self._conn

    def write(self, sent_patterns: SentencePatterns) -> None:
        """Replace the documents of the given sentences; uncommitted until ``commit``."""
        with self._lock:
            conn = self._connection()
            for sent_id, token_patterns in sent_patterns.items():
                rowid = _find_rowid(conn, sent_id)
                if rowid is not None:
                    conn.execute(f"DELETE FROM {TABLE_NAME} WHERE rowid = ?", (rowid,))
                conn.execute(
                    f"INSERT INTO {TABLE_NAME} (sentid, patterns) VALUES (?, ?)",
                    (sent_id, pickle.dumps(token_patterns, protocol=pickle.HIGHEST_PROTOCOL)),
                )

    def commit(self) -> None:
        with self._lock:
            if self._open:
                self._conn.commit()

    def close(self) -> None:
        """Commit and release the connection; safe to call repeatedly."""
        with self._lock:
            if self._open:
                self._conn.commit()
                self._conn.close()
                self._conn = None
                self._open = False


class IndexWriterPool:
    """Hands out one ``IndexWriter`` per index file.

    Backends that should share writers are given the same pool; a backend
    built without one gets a private pool.
    """

    def __init__(self):
        self._writers: Dict[str, IndexWriter] = {}
        self._lock = threading.Lock()

    def writer_for(self, index_path: Path) -> IndexWriter:
        key = str(Path(index_path).resolve())
        with self._lock:
            writer = self._writers.get(key)
            if writer is None:
                writer = self._writers[key] = IndexWriter(Path(index_path))
            return writer

    def close_all(self) -> None:
        with self._lock:
            writers = list(self._writers.values())
        for writer in writers:
            writer.close()


class PatternsForEachTokenSearchIndex(PatternsForEachToken):
    """Pattern index in an FTS5 table under ``config.index_dir``.

    Parameters
    ----------
    config : SurfacePatternConfig
        ``index_dir`` holds the index file; ``create_pat_index`` deletes any
        existing index first
    patterns : Optional[SentencePatterns]
        Initial content, committed immediately
    writers : Optional[IndexWriterPool]
        Pool providing the shared writer of the index file
    """

    store_way = StoreWay.SEARCH_INDEX

    def __init__(self, config: SurfacePatternConfig, patterns: Optional[SentencePatterns] = None,
                 writers: Optional[IndexWriterPool] = None):
        if not config.index_dir:
            raise ConfigurationError("index_dir is required for the search index pattern store")
        self.index_dir = Path(config.index_dir)
        self.index_dir.mkdir(parents=True, exist_ok=True)
        self.index_path = self.index_dir / SEARCH_INDEX_FILE_NAME
        self.writers = writers if writers is not None else IndexWriterPool()
        self.writer = self.writers.writer_for(self.index_path)
        if config.create_pat_index and self.index_path.exists():
            self.writer.close()
            self.index_path.unlink()
            logger.info("Deleted existing pattern index %s", self.index_path)

        self._reader: Optional[sqlite3.Connection] = None
        self._reader_lock = threading.Lock()

        if patterns:
            self.add_patterns_batch(patterns)
            self.setup_search()

    def add_patterns(self, sent_id: str, token_patterns: TokenPatterns) -> None:
        self.writer.write({sent_id: token_patterns})

    def add_patterns_batch(self, sent_patterns: SentencePatterns) -> None:
        self.writer.write(sent_patterns)

    def index_exists(self) -> bool:
        """Whether the index has been created; a missing index is not an error."""
        if not self.index_path.exists():
            return False
        conn = sqlite3.connect(str(self.index_path))
        try:
            conn.execute(f"SELECT rowid FROM {TABLE_NAME} LIMIT 1")
            return True
        except sqlite3.OperationalError as e:
            logger.debug("Pattern index not present yet: %s", e)
            return False
        finally:
            conn.close()

    def setup_search(self) -> None:
        """Commit pending writes and reopen the read view."""
        self.writer.commit()
        with self._reader_lock:
            if self._reader is not None:
                self._reader.close()
                self._reader = None
            if self.index_exists():
                self._reader = sqlite3.connect(str(self.index_path), timeout=30, check_same_thread=False)

    def get_patterns_for_all_tokens(self, sent_id: str) -> TokenPatterns:
        with self._reader_lock:
            if self._reader is None:
                if not self.index_exists():
                    return {}
                self._reader = sqlite3.connect(str(self.index_path), timeout=30, check_same_thread=False)
            rowid = _find_rowid(self._reader, sent_id)
            if rowid is None:
                return {}
            rows = self._reader.execute(
                f"SELECT patterns FROM {TABLE_NAME} WHERE rowid = ?", (rowid,)
            ).fetchall()
        return pickle.loads(rows[0][0])

    def close(self) -> None:
        self.writer.close()
        with self._reader_lock:
            if self._reader is not None:
                self._reader.close()
                self._reader = None

    def size(self) -> int:
        if not self.index_exists():
            return 0
        conn = sqlite3.connect(str(self.index_path))
        try:
            return conn.execute(f"SELECT COUNT(*) FROM {TABLE_NAME}").fetchone()[0]
        finally:
            conn.close()
