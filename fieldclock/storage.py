import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

SELFIE_CONTENT_TYPE = "image/jpeg"
ACTIONS = ("clock_in", "clock_out")


class ObjectStorage(Protocol):
    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` and return its public URL."""

    def url_for(self, key: str) -> str: ...


def upload_timestamp(now: Optional[datetime] = None) -> str:
    """UTC ISO-8601 timestamp with millisecond precision, ``:`` and ``.`` replaced by ``-``."""
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    iso = now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return iso.replace(":", "-").replace(".", "-")


def selfie_prefix(employee_id: str) -> str:
    return f"selfies/{employee_id}/"


def selfie_key(employee_id: str, action: str, now: Optional[datetime] = None) -> str:
    if action not in ACTIONS:
        raise ValueError(f"Unknown attendance action: {action}")
    return f"{selfie_prefix(employee_id)}{action}_{upload_timestamp(now)}.jpg"


class LocalObjectStorage:
    """Writes objects below ``root`` and serves them from ``base_url``.

    Keys are never overwritten; uploading to an existing key fails.
    """

    def __init__(self, root, base_url):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Invalid object key: {key}")
        return path

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    def _write(self, path: Path, data: bytes):
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "xb") as f:
            f.write(data)

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        path = self.path_for(key)
        await asyncio.to_thread(self._write, path, data)
        logger.info("Stored %s (%s, %d bytes)", key, content_type, len(data))
        return self.url_for(key)
