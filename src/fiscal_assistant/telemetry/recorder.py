"""Per-user turn log persisted as JSON Lines."""

from __future__ import annotations

import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from fiscal_assistant.config import settings
from fiscal_assistant.intent.types import Turn
from fiscal_assistant.utils.jsonl import JSONLReader, append_jsonl

_SAFE_ID_RE = re.compile(r"[^A-Za-z0-9_.-]")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JsonlTurnLog:
    """Append-only turn log, one ``<user_id>.jsonl`` file per user."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.log_dir = Path(log_dir or settings.TURN_LOG_DIR)
        self._clock = clock
        self._lock = threading.Lock()

    def _path(self, user_id: str) -> Path:
        return self.log_dir / f"{_SAFE_ID_RE.sub('_', user_id) or 'anonymous'}.jsonl"

    def append(
        self, user_id: str, role: str, content: str, metadata: dict[str, Any] | None = None
    ) -> None:
        record = {
            "user_id": user_id,
            "role": role,
            "content": content,
            "created_at": self._clock().isoformat(),
            "metadata": metadata or {},
        }
        with self._lock:
            append_jsonl(record, self._path(user_id))

    def recent(self, user_id: str, limit: int = 20) -> list[Turn]:
        rows = JSONLReader(self._path(user_id)).tail(limit)
        return [
            Turn(
                role=row.get("role", "user"),
                content=row.get("content", ""),
                created_at=datetime.fromisoformat(row["created_at"])
                if row.get("created_at")
                else None,
                metadata=row.get("metadata") or {},
            )
            for row in rows
        ]
