"""
Cache-or-generate orchestration for transcripts and dubbings.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from functools import partial

from .errors import StoreError, ValidationError
from .models import Dubbing, DubSegment, Transcript, TranscriptSegment
from .store import DocumentStore, artifact_path

logger = logging.getLogger("dubsync")


class ArtifactKind(str, Enum):
    TRANSCRIPT = "transcripts"
    DUBBING = "dubbings"


_ARTIFACT_TYPES = {
    ArtifactKind.TRANSCRIPT: Transcript,
    ArtifactKind.DUBBING: Dubbing,
}


@dataclass(frozen=True)
class ArtifactKey:
    kind: ArtifactKind
    resource_id: str
    language: str

    @property
    def path(self) -> str:
        return artifact_path(self.kind.value, self.resource_id, self.language)

    def dependency(self) -> "ArtifactKey | None":
        """The artifact that must be persisted before this one."""
        if self.kind is ArtifactKind.DUBBING:
            return ArtifactKey(ArtifactKind.TRANSCRIPT, self.resource_id, self.language)
        return None


Artifact = Transcript | Dubbing
Generate = Callable[[], Awaitable[list[TranscriptSegment] | list[DubSegment]]]


class ArtifactCache:
    """Store-backed artifact cache with one in-flight generation per key.

    Results are returned as soon as they are generated; the store write runs in
    the background and its failures are logged and kept in ``write_failures``.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._in_flight: dict[ArtifactKey, asyncio.Task] = {}
        self._pending_writes: dict[ArtifactKey, tuple[asyncio.Task, Artifact]] = {}
        self.write_failures: dict[ArtifactKey, BaseException] = {}

    def is_generating(self, kind: ArtifactKind, resource_id: str, language: str) -> bool:
        return ArtifactKey(kind, resource_id, language) in self._in_flight

    async def get_or_create(
        self,
        kind: ArtifactKind,
        resource_id: str,
        language: str,
        generate: Generate,
    ) -> Artifact:
        key = ArtifactKey(kind, resource_id, language)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load_or_generate(key, generate))
            self._in_flight[key] = task
            task.add_done_callback(partial(self._release, key))
        else:
            logger.info("Joining in-flight generation for %s", key.path)
        # shield: one caller giving up must not cancel the shared generation
        return await asyncio.shield(task)

    async def flush(self) -> None:
        """Wait for every background write scheduled so far."""
        while True:
            pending = [t for t, _ in self._pending_writes.values() if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def _release(self, key: ArtifactKey, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Generation failed for %s: %s", key.path, task.exception())

    async def peek(self, kind: ArtifactKind, resource_id: str, language: str) -> Artifact | None:
        """A complete artifact that is saved or still being saved; never generates."""
        return await self._lookup(ArtifactKey(kind, resource_id, language))

    async def _lookup(self, key: ArtifactKey) -> Artifact | None:
        unsaved = self._pending_writes.get(key)
        if unsaved is not None:
            return unsaved[1]

        try:
            snapshot = await self.store.get(key.path)
        except StoreError as e:
            logger.warning("Ignoring unreadable cache entry %s: %s", key.path, e)
            return None
        if not snapshot.exists:
            return None
        try:
            cached = _ARTIFACT_TYPES[key.kind].from_document(snapshot.data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring undecodable cache entry %s: %s", key.path, e)
            return None
        if not cached.is_complete():
            logger.info("Cache entry %s is empty or incomplete; treating as a miss", key.path)
            return None
        logger.info("Cache hit: %s (%d segments)", key.path, len(cached.segments))
        return cached

    async def _load_or_generate(self, key: ArtifactKey, generate: Generate) -> Artifact:
        cached = await self._lookup(key)
        if cached is not None:
            return cached

        segments = await generate()
        if not segments:
            raise ValidationError(f"Generator returned no segments for {key.path}.")
        artifact = _ARTIFACT_TYPES[key.kind](
            resource_id=key.resource_id, language=key.language, segments=list(segments)
        )
        if not artifact.is_complete():
            raise ValidationError(f"Generated artifact for {key.path} is incomplete.")

        self._persist(key, artifact)
        return artifact

    def _persist(self, key: ArtifactKey, artifact: Artifact) -> None:
        task = asyncio.ensure_future(self._write(key, artifact))
        self._pending_writes[key] = (task, artifact)
        task.add_done_callback(partial(self._write_done, key))

    async def _write(self, key: ArtifactKey, artifact: Artifact) -> None:
        dep = key.dependency()
        if dep is not None:
            pending = self._pending_writes.get(dep)
            if pending is not None:
                dep_task = pending[0]
                await asyncio.wait([dep_task])
                failed = dep_task.cancelled() or dep_task.exception() is not None
            else:
                failed = dep in self.write_failures
            if failed:
                raise StoreError(f"{dep.path} was not saved; refusing to save {key.path}")
        await self.store.set(key.path, artifact.to_document())

    def _write_done(self, key: ArtifactKey, task: asyncio.Task) -> None:
        current = self._pending_writes.get(key)
        if current is not None and current[0] is task:
            del self._pending_writes[key]
        if task.cancelled():
            logger.warning("Write of %s was cancelled", key.path)
            self.write_failures[key] = asyncio.CancelledError()
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Failed to persist %s: %s", key.path, exc)
            self.write_failures[key] = exc
            return
        self.write_failures.pop(key, None)
        logger.info("Saved %s", key.path)
