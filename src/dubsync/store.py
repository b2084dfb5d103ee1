"""
Document store boundary: async get/set of whole documents by path.
"""

import asyncio
import copy
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

from .errors import StoreError

logger = logging.getLogger("dubsync")


def resource_path(resource_id: str) -> str:
    return f"resources/{resource_id}"


def artifact_path(collection: str, resource_id: str, language: str) -> str:
    return f"resources/{resource_id}/{collection}/{language}"


@dataclass
class Snapshot:
    exists: bool
    data: dict = field(default_factory=dict)


class DocumentStore(Protocol):
    async def get(self, path: str) -> Snapshot: ...

    async def set(self, path: str, data: dict) -> None: ...


class MemoryStore:
    """In-process store; documents are deep-copied in and out."""

    def __init__(self) -> None:
        self.documents: dict[str, dict] = {}

    async def get(self, path: str) -> Snapshot:
        data = self.documents.get(path)
        if data is None:
            return Snapshot(exists=False)
        return Snapshot(exists=True, data=copy.deepcopy(data))

    async def set(self, path: str, data: dict) -> None:
        self.documents[path] = copy.deepcopy(data)


class JsonFileStore:
    """One JSON file per document under ``root``."""

    def __init__(self, root: str) -> None:
        self.root = Path(root)

    def _file(self, path: str) -> Path:
        parts = [p for p in path.split("/") if p]
        if not parts:
            raise StoreError("Empty document path")
        # percent-encode each segment so ids/languages can't escape root
        safe = [quote(p, safe="") if p not in (".", "..") else p.replace(".", "%2E") for p in parts]
        return self.root.joinpath(*safe[:-1], safe[-1] + ".json")

    def _read(self, path: str) -> Snapshot:
        f = self._file(path)
        if not f.exists():
            return Snapshot(exists=False)
        try:
            with open(f, encoding="utf-8") as fh:
                return Snapshot(exists=True, data=json.load(fh))
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Could not read {path}: {e}") from e

    def _write(self, path: str, data: dict) -> None:
        f = self._file(path)
        try:
            f.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=f.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh, ensure_ascii=False, indent=2)
                os.replace(tmp, f)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StoreError(f"Could not write {path}: {e}") from e
        logger.debug("Saved %s -> %s", path, f)

    async def get(self, path: str) -> Snapshot:
        return await asyncio.to_thread(self._read, path)

    async def set(self, path: str, data: dict) -> None:
        await asyncio.to_thread(self._write, path, data)
