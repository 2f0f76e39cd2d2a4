"""Long-term memories: OpenAI embeddings stored in a LanceDB table."""

import asyncio
import hashlib
import logging
import threading
from collections import Counter
from datetime import datetime
from pathlib import Path

import openai

from omi_relay.completion_client import make_openai_client, openai_error

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "omi_memories"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"


def memory_id(user_id: str, content: str) -> str:
    """Stable id: saving the same text twice for a user overwrites, not duplicates."""
    return hashlib.sha256(f"{user_id}\x00{content}".encode()).hexdigest()[:32]


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class OpenAIEmbedder:
    def __init__(self, config: dict, client=None):
        self.config = config
        self.model = config.get("openai", {}).get("embedding_model", DEFAULT_EMBEDDING_MODEL)
        self._client = client

    async def embed(self, text: str) -> list[float]:
        if self._client is None:
            self._client = make_openai_client(self.config)
        try:
            resp = await self._client.embeddings.create(model=self.model, input=text[:8000])
        except openai.OpenAIError as e:
            logger.error(f"[MEMORY] Embedding failed: {e}")
            raise openai_error(e) from e
        return resp.data[0].embedding


class MemoryStore:
    """Saves and searches per-user memories.

    Args:
        db_path: LanceDB directory.
        embedder: Object with ``async embed(text) -> list[float]``.
        table_name: Table holding the memories.
    """

    def __init__(self, db_path: str, embedder, table_name: str = DEFAULT_TABLE):
        import lancedb

        Path(db_path).mkdir(parents=True, exist_ok=True)
        self._db = lancedb.connect(db_path)
        self.embedder = embedder
        self.table_name = table_name
        self._write_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: dict, embedder=None) -> "MemoryStore":
        mem = config.get("memory", {})
        return cls(
            db_path=mem["db_path"],
            embedder=embedder or OpenAIEmbedder(config),
            table_name=mem.get("table", DEFAULT_TABLE),
        )

    # ── Table management ────────────────────────────────────────────

    def _get_table(self):
        try:
            return self._db.open_table(self.table_name)
        except Exception:
            return None

    def _upsert(self, records: list[dict]):
        # Executor threads may race to create the table on the first save
        with self._write_lock:
            tbl = self._get_table()
            if tbl is None:
                self._db.create_table(self.table_name, records)
                return
            (
                tbl.merge_insert("id")
                .when_matched_update_all()
                .when_not_matched_insert_all()
                .execute(records)
            )

    # ── Save ────────────────────────────────────────────────────────

    async def save(self, user_id: str, content: str, category: str = "general") -> str:
        """Embed ``content`` and upsert it for ``user_id``. Returns the memory id."""
        content = content.strip()
        if not content:
            raise ValueError("memory content is empty")
        vector = await self.embedder.embed(content)
        mid = memory_id(user_id, content)
        record = {
            "id": mid,
            "content": content,
            "user_id": user_id,
            "category": category,
            "timestamp": datetime.now().isoformat(),
            "vector": vector,
        }
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._upsert, [record])
        logger.info(f"[MEMORY] Saved {mid} for {user_id}: {content[:80]}")
        return mid

    # ── Search ──────────────────────────────────────────────────────

    def _query(self, vector: list[float], user_id: str, limit: int) -> list[dict]:
        tbl = self._get_table()
        if tbl is None:
            return []
        results = (
            tbl.search(vector)
            .where(f"user_id = {_quote(user_id)}", prefilter=True)
            .limit(limit)
            .to_pandas()
        )
        out = []
        for _, row in results.iterrows():
            out.append({
                "id": row.get("id", ""),
                "content": row.get("content", ""),
                "category": row.get("category", ""),
                "timestamp": row.get("timestamp", ""),
                "score": float(row.get("_distance", 0)),
            })
        return sorted(out, key=lambda r: r["score"])

    async def search(self, user_id: str, query: str, limit: int = 5) -> list[dict]:
        """Nearest memories of ``user_id`` to ``query``, closest first."""
        query = query.strip()
        if not query:
            return []
        vector = await self.embedder.embed(query)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._query, vector, user_id, limit)

    # ── Inspection ──────────────────────────────────────────────────

    def list_memories(self, user_id: str | None = None) -> list[dict]:
        tbl = self._get_table()
        if tbl is None:
            return []
        df = tbl.to_pandas()
        if user_id is not None:
            df = df[df["user_id"] == user_id]
        df = df.sort_values("timestamp", ascending=False)
        return [
            {"id": r["id"], "user_id": r["user_id"], "content": r["content"],
             "category": r["category"], "timestamp": r["timestamp"]}
            for _, r in df.iterrows()
        ]

    def stats(self) -> dict:
        memories = self.list_memories()
        if not memories and self._get_table() is None:
            return {"total_memories": 0, "users": {}, "categories": {}, "months": {}, "table_exists": False}
        return {
            "total_memories": len(memories),
            "users": dict(Counter(m["user_id"] for m in memories)),
            "categories": dict(Counter(m["category"] or "uncategorized" for m in memories)),
            "months": dict(Counter(m["timestamp"][:7] for m in memories if m["timestamp"])),
            "table_exists": True,
        }
