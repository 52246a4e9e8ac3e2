"""SharedStore with disk persistence for knowledge retention.

Keeps three collections across restarts: the knowledge cache, the search
history and per-query confidence scores. Writes are debounced and atomic
(temp file, then rename over the target).
"""

import asyncio
import json
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from loguru import logger

from chimpflow.errors import ChimpflowError, ErrorKind
from chimpflow.graph.engine import SharedStore
from chimpflow.utils.helpers import ensure_dir, preview
from chimpflow.utils.tasks import Debouncer

KNOWLEDGE_CACHE = "knowledgeCache"
SEARCH_HISTORY = "searchHistory"
CONFIDENCE_SCORES = "confidenceScores"
PERSISTED_KEYS = (KNOWLEDGE_CACHE, SEARCH_HISTORY, CONFIDENCE_SCORES)

FORMAT_VERSION = "1.0"
MAX_SEARCH_HISTORY = 100
STALE_AFTER_SECONDS = 30 * 24 * 60 * 60
MIN_ACCESSES_TO_KEEP = 2


@dataclass
class KnowledgeEntry:
    """A cached search result with its bookkeeping."""
    result: Any
    timestamp: float
    confidence: float = 0.0
    access_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "result": self.result,
            "timestamp": self.timestamp,
            "confidence": self.confidence,
            "accessCount": self.access_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeEntry":
        return cls(
            result=data.get("result"),
            timestamp=float(data["timestamp"]),
            confidence=float(data.get("confidence", 0)),
            access_count=int(data.get("accessCount", 0)),
        )


class PersistentSharedStore(SharedStore):
    """SharedStore whose knowledge collections survive restarts.

    Loading happens at construction and never fails: a missing file means a
    fresh start, a malformed one is logged and ignored. Every ``set`` marks
    the store dirty and restarts a debounce timer; the write happens once
    the store has been quiet for ``save_delay`` seconds. ``shutdown()``
    flushes whatever is still pending.
    """

    def __init__(
        self,
        persistence_path: Union[str, Path] = "data/knowledge-store.json",
        save_delay: float = 2.0,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__()
        self.persistence_path = Path(persistence_path).expanduser().resolve()
        self.is_dirty = False
        self._clock = clock
        self._loading = False
        self._revision = 0
        self._saver = Debouncer(save_delay, self._save_if_dirty, name="knowledge-store-save")

        self.data[KNOWLEDGE_CACHE] = {}
        self.data[SEARCH_HISTORY] = []
        self.data[CONFIDENCE_SCORES] = {}

        self._ensure_data_directory()
        self.load_from_disk()

    # -- collections ---------------------------------------------------------

    @property
    def knowledge_cache(self) -> Dict[str, KnowledgeEntry]:
        return self.data[KNOWLEDGE_CACHE]

    @property
    def search_history(self) -> List[Dict[str, Any]]:
        return self.data[SEARCH_HISTORY]

    @property
    def confidence_scores(self) -> Dict[str, float]:
        return self.data[CONFIDENCE_SCORES]

    @property
    def last_save_error(self) -> Optional[BaseException]:
        """Failure of the most recent background save, if any."""
        return self._saver.last_error

    # -- SharedStore overrides -----------------------------------------------

    def set(self, key: str, value: Any) -> "PersistentSharedStore":
        super().set(key, value)
        self.mark_dirty()
        return self

    def mark_dirty(self) -> None:
        """Flag unsaved changes and restart the save countdown."""
        self.is_dirty = True
        self._revision += 1
        self._saver.schedule()

    # -- knowledge API -------------------------------------------------------

    def cache_search_result(self, query: str, result: Any, confidence: float = 0) -> KnowledgeEntry:
        """Cache a search result under the lower-cased query."""
        key = query.lower()
        now = self._clock()
        cache = self.knowledge_cache
        history = self.search_history
        scores = self.confidence_scores

        previous = cache.get(key)
        entry = KnowledgeEntry(
            result=result,
            timestamp=now,
            confidence=confidence,
            access_count=(previous.access_count if previous else 0) + 1,
        )
        cache[key] = entry

        history.insert(0, {"query": query, "timestamp": now, "confidence": confidence})
        del history[MAX_SEARCH_HISTORY:]

        scores[key] = confidence

        self.set(KNOWLEDGE_CACHE, cache)
        self.set(SEARCH_HISTORY, history)
        self.set(CONFIDENCE_SCORES, scores)

        logger.info(f'Cached search result for: "{preview(query)}" (confidence: {confidence}%)')
        return entry

    def get_cached_result(self, query: str) -> Optional[KnowledgeEntry]:
        """Case-insensitive lookup; a hit counts as an access.

        TTL is not applied here, callers decide freshness from the entry's
        timestamp.
        """
        entry = self.knowledge_cache.get(query.lower())
        if entry is None:
            return None

        entry.access_count += 1
        self.mark_dirty()
        logger.info(f'Retrieved cached result for: "{preview(query)}" (accessed {entry.access_count} times)')
        return entry

    def has_knowledge(self, query: str) -> bool:
        return query.lower() in self.knowledge_cache

    def record_confidence(self, query: str, confidence: float) -> None:
        self.confidence_scores[query.lower()] = confidence
        self.mark_dirty()

    def get_knowledge_stats(self) -> Dict[str, Any]:
        scores = self.confidence_scores
        return {
            "cached_queries": len(self.knowledge_cache),
            "total_searches": len(self.search_history),
            "avg_confidence": sum(scores.values()) / len(scores) if scores else 0.0,
            "recent_searches": self.search_history[:10],
        }

    def cleanup_old_knowledge(self, now: Optional[float] = None) -> int:
        """Drop entries that are both older than 30 days and rarely used.

        Entries accessed at least twice are kept regardless of age.

        Returns:
            Number of entries removed.
        """
        cutoff = (now if now is not None else self._clock()) - STALE_AFTER_SECONDS
        cache = self.knowledge_cache
        stale = [
            query for query, entry in cache.items()
            if entry.timestamp < cutoff and entry.access_count < MIN_ACCESSES_TO_KEEP
        ]
        for query in stale:
            del cache[query]

        if stale:
            self.set(KNOWLEDGE_CACHE, cache)
            logger.info(f"Cleaned up {len(stale)} old knowledge entries")

        return len(stale)

    # -- persistence ---------------------------------------------------------

    def _ensure_data_directory(self) -> None:
        try:
            ensure_dir(self.persistence_path.parent)
        except OSError as e:
            logger.warning(f"Could not create data directory: {e}")

    def load_from_disk(self) -> None:
        """Load saved knowledge. Missing or malformed files leave the store empty."""
        if self._loading:
            return
        self._loading = True

        try:
            try:
                raw = self.persistence_path.read_text(encoding="utf-8")
            except FileNotFoundError:
                logger.info("No existing knowledge file found, starting fresh")
                return
            except OSError as e:
                logger.warning(f"Could not read knowledge file {self.persistence_path}: {e}")
                return

            try:
                saved = json.loads(raw)
                if not isinstance(saved, dict):
                    raise ValueError("top-level JSON value must be an object")
                cache = {
                    str(query): KnowledgeEntry.from_dict(entry)
                    for query, entry in (saved.get(KNOWLEDGE_CACHE) or {}).items()
                }
                history = [dict(item) for item in (saved.get(SEARCH_HISTORY) or [])][:MAX_SEARCH_HISTORY]
                scores = {
                    str(query): float(score)
                    for query, score in (saved.get(CONFIDENCE_SCORES) or {}).items()
                }
            except (json.JSONDecodeError, ValueError, TypeError, KeyError, AttributeError) as e:
                logger.warning(f"Error loading knowledge from disk, starting empty: {e}")
                return

            self.data[KNOWLEDGE_CACHE] = cache
            self.data[SEARCH_HISTORY] = history
            self.data[CONFIDENCE_SCORES] = scores

            logger.info(
                f"Loaded persistent knowledge: {len(cache)} cached queries, "
                f"{len(history)} history entries, {len(scores)} confidence scores"
            )
        finally:
            self._loading = False

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready copy of the persisted collections plus metadata."""
        return {
            KNOWLEDGE_CACHE: {q: e.to_dict() for q, e in self.knowledge_cache.items()},
            SEARCH_HISTORY: list(self.search_history),
            CONFIDENCE_SCORES: dict(self.confidence_scores),
            "lastSaved": _iso_now(),
            "version": FORMAT_VERSION,
        }

    async def save_to_disk(self) -> None:
        """Write the snapshot atomically.

        Raises:
            ChimpflowError: (STORAGE) if the file cannot be written.
        """
        if self._loading:
            return

        revision = self._revision
        payload = json.dumps(self.snapshot(), indent=2, default=str)

        try:
            await asyncio.to_thread(_write_atomic, self.persistence_path, payload)
        except OSError as e:
            logger.error(f"Error saving knowledge to disk: {e}")
            raise ChimpflowError(
                ErrorKind.STORAGE,
                f"Could not write {self.persistence_path}: {e}",
                component="persistent_store",
                operation="save_to_disk",
                cause=e,
            ) from e

        # A set() that landed while writing keeps the store dirty
        if revision == self._revision:
            self.is_dirty = False

        logger.debug(f"Knowledge saved to disk ({len(self.knowledge_cache)} entries)")

    async def _save_if_dirty(self) -> None:
        if self.is_dirty:
            await self.save_to_disk()

    async def force_save(self) -> None:
        """Save immediately, dropping the pending debounce."""
        self._saver.cancel()
        await self.save_to_disk()

    async def shutdown(self) -> None:
        """Final flush; call before the process exits."""
        self._saver.cancel()
        if self.is_dirty:
            await self.save_to_disk()
        logger.info("PersistentSharedStore shutdown complete")


def _write_atomic(path: Path, payload: str) -> None:
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        f.write(payload)
    os.replace(tmp_path, path)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()
