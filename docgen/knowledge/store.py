"""
Knowledge Store - SQLite persistence for sites, resources and embeddings.

Tables:
    sites       (id, url UNIQUE, name, created_at)
    resources   (id, site_id -> sites ON DELETE CASCADE, content, tags, description,
                 curl_command, parameters_json, created_at)
    embeddings  (id, resource_id -> resources ON DELETE CASCADE, content, embedding BLOB)

Vectors are stored as float32 BLOBs; similarity is computed in numpy.
"""

import json
import logging
import sqlite3
import threading
import time
import uuid
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from docgen.core.exceptions import DatabaseError
from docgen.knowledge.models import ParameterSpec, Resource, ResourceInput, SearchResult, Site

logger = logging.getLogger(__name__)

Chunk = Tuple[str, np.ndarray]


class KnowledgeStore:
    """SQLite-backed repository for the knowledge base."""

    def __init__(self, db_path: str | Path):
        """
        Args:
            db_path: Path to the SQLite database file (":memory:" for tests)
        """
        self.db_path = Path(db_path) if str(db_path) != ":memory:" else db_path
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA foreign_keys=ON;")
        self._ensure_tables()

    def _ensure_tables(self) -> None:
        with self._lock:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS sites (
                    id TEXT PRIMARY KEY,
                    url TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    created_at REAL NOT NULL
                )
            """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS resources (
                    id TEXT PRIMARY KEY,
                    site_id TEXT NOT NULL,
                    content TEXT NOT NULL,
                    tags TEXT,
                    description TEXT,
                    curl_command TEXT,
                    parameters_json TEXT DEFAULT '[]',
                    created_at REAL NOT NULL,
                    FOREIGN KEY (site_id) REFERENCES sites(id) ON DELETE CASCADE
                )
            """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS embeddings (
                    id TEXT PRIMARY KEY,
                    resource_id TEXT NOT NULL,
                    content TEXT NOT NULL,
                    embedding BLOB NOT NULL,
                    FOREIGN KEY (resource_id) REFERENCES resources(id) ON DELETE CASCADE
                )
            """)
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_resources_site ON resources(site_id)")
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_embeddings_resource ON embeddings(resource_id)")
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def ping(self) -> bool:
        """True when the database answers a trivial query."""
        try:
            with self._lock:
                self._conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error as e:
            logger.warning(f"[KnowledgeStore] Ping failed: {e}")
            return False

    # ----- Sites -----

    def get_site_by_url(self, url: str) -> Optional[Site]:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT id, url, name, created_at FROM sites WHERE url = ?", (url,)
                ).fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"could not look up site {url}", e) from e
        return Site(*row) if row else None

    def insert_site(self, url: str, name: str) -> Site:
        """
        Insert a site row, or return the existing one.

        The UNIQUE(url) constraint decides concurrent inserts; the loser re-reads.
        """
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT INTO sites (id, url, name, created_at) VALUES (?, ?, ?, ?) "
                    "ON CONFLICT(url) DO NOTHING",
                    (uuid.uuid4().hex, url, name, time.time()),
                )
                self._conn.commit()
                row = self._conn.execute(
                    "SELECT id, url, name, created_at FROM sites WHERE url = ?", (url,)
                ).fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"could not create site {url}", e) from e
        return Site(*row)

    # ----- Resources -----

    def insert_resources(
        self,
        rows: Sequence[Tuple[str, ResourceInput]],
        chunks: Optional[Sequence[Sequence[Chunk]]] = None,
    ) -> List[Resource]:
        """
        Insert resources (and optionally their embeddings) in one transaction.

        Args:
            rows: (site_id, input) pairs
            chunks: per-row embedding chunks, aligned with rows

        Returns:
            The inserted resources, in input order
        """
        now = time.time()
        resources = [
            Resource(
                id=uuid.uuid4().hex,
                site_id=site_id,
                content=item.content,
                tags=item.tags,
                description=item.description,
                curl_command=item.curl_command,
                parameters=list(item.parameters),
                created_at=now,
            )
            for site_id, item in rows
        ]

        with self._lock:
            try:
                self._conn.executemany(
                    """
                    INSERT INTO resources (
                        id, site_id, content, tags, description, curl_command,
                        parameters_json, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            r.id,
                            r.site_id,
                            r.content,
                            r.tags,
                            r.description,
                            r.curl_command,
                            json.dumps([p.model_dump() for p in r.parameters]),
                            r.created_at,
                        )
                        for r in resources
                    ],
                )
                if chunks is not None:
                    for resource, resource_chunks in zip(resources, chunks):
                        self._insert_embeddings_locked(resource.id, resource_chunks)
                self._conn.commit()
            except Exception as e:
                self._conn.rollback()
                if isinstance(e, sqlite3.Error):
                    raise DatabaseError("could not create resources", e) from e
                raise

        return resources

    def list_resources(self, site_id: str) -> List[Resource]:
        try:
            with self._lock:
                rows = self._conn.execute(
                    """
                    SELECT id, site_id, content, tags, description, curl_command,
                           parameters_json, created_at
                    FROM resources WHERE site_id = ?
                    ORDER BY created_at, rowid
                    """,
                    (site_id,),
                ).fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"could not list resources for site {site_id}", e) from e
        return [self._row_to_resource(row) for row in rows]

    def get_resource(self, resource_id: str) -> Optional[Resource]:
        with self._lock:
            row = self._conn.execute(
                """
                SELECT id, site_id, content, tags, description, curl_command,
                       parameters_json, created_at
                FROM resources WHERE id = ?
                """,
                (resource_id,),
            ).fetchone()
        return self._row_to_resource(row) if row else None

    def count_sites(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM sites").fetchone()[0]

    # ----- Embeddings -----

    def insert_embeddings(self, resource_id: str, chunks: Iterable[Chunk]) -> int:
        with self._lock:
            try:
                count = self._insert_embeddings_locked(resource_id, chunks)
                self._conn.commit()
            except Exception as e:
                self._conn.rollback()
                if isinstance(e, sqlite3.Error):
                    raise DatabaseError(f"could not store embeddings for {resource_id}", e) from e
                raise
        return count

    def _insert_embeddings_locked(self, resource_id: str, chunks: Iterable[Chunk]) -> int:
        values = [
            (uuid.uuid4().hex, resource_id, text, np.asarray(vector, dtype=np.float32).tobytes())
            for text, vector in chunks
        ]
        if values:
            self._conn.executemany(
                "INSERT INTO embeddings (id, resource_id, content, embedding) VALUES (?, ?, ?, ?)",
                values,
            )
        return len(values)

    def count_embeddings(self, resource_id: str) -> int:
        with self._lock:
            return self._conn.execute(
                "SELECT COUNT(*) FROM embeddings WHERE resource_id = ?", (resource_id,)
            ).fetchone()[0]

    def search(
        self,
        query_embedding: np.ndarray,
        url: Optional[str] = None,
        min_similarity: float = 0.5,
        limit: int = 4,
    ) -> List[SearchResult]:
        """
        Nearest resources by cosine similarity of their chunk embeddings.

        A resource scores as its best-matching chunk. Only scores strictly above
        `min_similarity` are returned, best first.
        """
        sql = """
            SELECT e.resource_id, e.embedding,
                   r.content, r.tags, r.description, r.curl_command, r.parameters_json,
                   s.url, s.name
            FROM embeddings e
            JOIN resources r ON e.resource_id = r.id
            JOIN sites s ON r.site_id = s.id
        """
        params: tuple = ()
        if url:
            sql += " WHERE s.url = ?"
            params = (url,)

        try:
            with self._lock:
                rows = self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise DatabaseError("could not search documentation", e) from e

        if not rows:
            return []

        query = np.asarray(query_embedding, dtype=np.float32)
        best: dict[str, Tuple[float, tuple]] = {}
        for row in rows:
            vector = np.frombuffer(row[1], dtype=np.float32)
            similarity = self._cosine_similarity(query, vector)
            if similarity <= min_similarity:
                continue
            current = best.get(row[0])
            if current is None or similarity > current[0]:
                best[row[0]] = (similarity, row)

        ranked = sorted(best.values(), key=lambda item: item[0], reverse=True)[:limit]
        return [
            SearchResult(
                resource_id=row[0],
                content=row[2],
                tags=row[3],
                description=row[4],
                curl_command=row[5],
                parameters=self._parse_parameters(row[6]),
                similarity=similarity,
                url=row[7],
                website_name=row[8],
            )
            for similarity, row in ranked
        ]

    # ----- Helpers -----

    def _cosine_similarity(self, a: np.ndarray, b: np.ndarray) -> float:
        """Compute cosine similarity between two vectors."""
        if a.shape != b.shape:
            return 0.0
        norm_a = np.linalg.norm(a)
        norm_b = np.linalg.norm(b)
        if norm_a == 0 or norm_b == 0:
            return 0.0
        return float(np.dot(a, b) / (norm_a * norm_b))

    @staticmethod
    def _parse_parameters(raw: Optional[str]) -> List[ParameterSpec]:
        return [ParameterSpec(**p) for p in json.loads(raw)] if raw else []

    def _row_to_resource(self, row: tuple) -> Resource:
        return Resource(
            id=row[0],
            site_id=row[1],
            content=row[2],
            tags=row[3],
            description=row[4],
            curl_command=row[5],
            parameters=self._parse_parameters(row[6]),
            created_at=row[7],
        )
