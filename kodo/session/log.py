import json
import os
from pathlib import Path
from typing import Any

from kodo.session.models import Message
from kodo.utils import iso_now


def _append_line(path: Path, entry: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(json.dumps(entry, default=str) + "\n")
        f.flush()
        os.fsync(f.fileno())


def read_lines(path: Path) -> list[dict]:
    if not path.exists():
        return []
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


class MessageLog:
    """Append-only JSONL log of every message in a session."""

    def __init__(self, path: Path, session_id: str):
        self.path = path
        self.session_id = session_id

    def add_message(self, message: Message) -> None:
        _append_line(self.path, {**message.to_dict(), "sessionId": self.session_id})

    def entries(self) -> list[dict]:
        return read_lines(self.path)


class RequestLog:
    """Per-request JSONL log: one metadata line plus the raw stream chunks."""

    def __init__(self, requests_dir: Path):
        self.requests_dir = requests_dir

    def path_for(self, request_id: str) -> Path:
        return self.requests_dir / f"{request_id}.jsonl"

    def log_metadata(
        self,
        request_id: str,
        *,
        prompt: Any = None,
        model: str | None = None,
        tools: list[str] | None = None,
        request: Any = None,
        response: Any = None,
        error: str | None = None,
    ) -> None:
        _append_line(
            self.path_for(request_id),
            {
                "type": "metadata",
                "requestId": request_id,
                "timestamp": iso_now(),
                "prompt": prompt,
                "model": model,
                "tools": tools,
                "request": request,
                "response": response,
                "error": error,
            },
        )

    def log_chunk(self, request_id: str, chunk: Any) -> None:
        _append_line(
            self.path_for(request_id),
            {"type": "chunk", "requestId": request_id, "timestamp": iso_now(), "chunk": chunk},
        )

    def entries(self, request_id: str) -> list[dict]:
        return read_lines(self.path_for(request_id))
