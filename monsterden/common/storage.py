"""Simple JSON storage abstraction.

The in-memory wallet, quest and monster stores can snapshot their records as
a single JSON document so a local server survives restarts. This file provides
a tiny pluggable interface that can back the snapshot with a local file (for
tests and development) or an S3 object. Parameter Store is not offered: its
value size limit is far below a store snapshot. The storage is selected via
URI scheme:

``file:///path/to/file.json``      -> local file
``s3://bucket/key.json``          -> S3 object

Reads quietly return an empty dictionary when the document is missing or
unreadable so a fresh deployment starts from empty stores. Writes propagate
their errors: a ledger that silently fails to persist would lose coins.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Protocol
from urllib.parse import urlparse

from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class JSONStorage(Protocol):
    """Protocol for simple JSON key-value storage."""

    def load(self) -> Dict[str, Any]:
        """Return the stored JSON object or an empty dict."""

    def save(self, data: Dict[str, Any]) -> None:
        """Persist ``data``."""


@dataclass
class FileJSONStorage:
    path: Path

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to read %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # write-then-rename so a crash never leaves half a snapshot behind
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, default=str))
        os.replace(tmp_path, self.path)


@dataclass
class S3JSONStorage:
    bucket: str
    key: str
    client: Any | None = None

    def _client(self):
        if self.client is None:
            import boto3  # type: ignore

            self.client = boto3.client("s3")
        return self.client

    def load(self) -> Dict[str, Any]:
        try:
            obj = self._client().get_object(Bucket=self.bucket, Key=self.key)
            return json.loads(obj["Body"].read())
        except (ClientError, BotoCoreError, json.JSONDecodeError) as exc:
            logger.warning("S3 load failed for %s/%s: %s", self.bucket, self.key, exc)
            return {}

    def save(self, data: Dict[str, Any]) -> None:
        body = json.dumps(data, default=str).encode("utf-8")
        self._client().put_object(Bucket=self.bucket, Key=self.key, Body=body)


def get_storage(uri: str) -> JSONStorage:
    """Return a :class:`JSONStorage` for ``uri``.

    Parameters
    ----------
    uri:
        Storage location specified as ``file://`` or ``s3://``.
    """

    parsed = urlparse(uri)
    scheme = parsed.scheme or "file"

    if scheme == "s3":
        return S3JSONStorage(bucket=parsed.netloc, key=parsed.path.lstrip("/"))

    if scheme in {"file", ""}:
        path = parsed.path
        if parsed.netloc:
            path = os.path.join(parsed.netloc, path.lstrip("/"))
        if not os.path.isabs(path):
            path = os.path.join(os.getcwd(), path)
        return FileJSONStorage(path=Path(path))

    raise ValueError(f"Unsupported storage scheme: {scheme}")


def optional_storage(uri: str | None) -> JSONStorage | None:
    """Return storage for ``uri`` or ``None`` when snapshots are disabled."""
    if not uri:
        return None
    return get_storage(uri)


__all__ = [
    "JSONStorage",
    "FileJSONStorage",
    "S3JSONStorage",
    "get_storage",
    "optional_storage",
]
