"""
Entry points used by the UI: cached transcript and dubbing generation.
"""

import logging
import re

from .cache import ArtifactCache, ArtifactKind
from .config import Settings
from .dubbing import generate_dub_audio
from .errors import DependencyMissingError, DubSyncError, ValidationError
from .models import Dubbing, Resource, Transcript
from .store import DocumentStore, resource_path
from .stt import TranscriptionModel
from .transcript import generate_transcript
from .tts import SpeechSynthesizer

logger = logging.getLogger("dubsync")

_EXTERNAL_VIDEO_RE = re.compile(
    r"^.*(youtu\.be/|youtube\.com/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*", re.IGNORECASE
)


def is_external_embed(url: str) -> bool:
    """True for third-party hosted video (e.g. YouTube links) that cannot be synced."""
    m = _EXTERNAL_VIDEO_RE.match(url or "")
    return bool(m and len(m.group(2)) == 11)


def _clean_language(language: str) -> str:
    lang = (language or "").strip()
    if not lang:
        raise ValidationError("A target language is required.")
    return lang


class ContentPipeline:
    """Transcript -> dubbing generation with store-backed caching."""

    def __init__(
        self,
        store: DocumentStore,
        transcriber: TranscriptionModel,
        synthesizer: SpeechSynthesizer,
        settings: Settings | None = None,
        cache: ArtifactCache | None = None,
    ) -> None:
        self.store = store
        self.transcriber = transcriber
        self.synthesizer = synthesizer
        self.settings = settings or Settings()
        self.cache = cache or ArtifactCache(store)

    async def load_resource(self, resource_id: str) -> Resource:
        snapshot = await self.store.get(resource_path(resource_id))
        if not snapshot.exists:
            raise DubSyncError(f"Resource {resource_id!r} not found.")
        resource = Resource.from_document(resource_id, snapshot.data)
        if not resource.file_url:
            raise ValidationError(f"Resource {resource_id!r} has no video file.")
        if is_external_embed(resource.file_url):
            raise ValidationError(
                "AI transcripts and dubbing only support directly uploaded videos."
            )
        return resource

    async def get_or_create_transcript(self, resource_id: str, language: str) -> Transcript:
        language = _clean_language(language)

        async def generate():
            resource = await self.load_resource(resource_id)
            return await generate_transcript(
                self.transcriber,
                resource.file_url,
                language,
                timeout=self.settings.generation_timeout,
            )

        return await self.cache.get_or_create(
            ArtifactKind.TRANSCRIPT, resource_id, language, generate
        )

    async def get_or_create_dubbing(self, resource_id: str, language: str) -> Dubbing:
        """Dubbing for ``language``, creating the transcript first when needed."""
        language = _clean_language(language)

        async def generate():
            transcript = await self.get_or_create_transcript(resource_id, language)
            return await self._synthesize(transcript)

        return await self.cache.get_or_create(
            ArtifactKind.DUBBING, resource_id, language, generate
        )

    async def create_dubbing_from_transcript(self, resource_id: str, language: str) -> Dubbing:
        """Dubbing from an existing transcript only; never generates the transcript."""
        language = _clean_language(language)

        async def generate():
            transcript = await self.cache.peek(ArtifactKind.TRANSCRIPT, resource_id, language)
            if transcript is None:
                raise DependencyMissingError(
                    f"No timestamped transcript found for {language}. "
                    "Please generate a transcript first."
                )
            return await self._synthesize(transcript)

        return await self.cache.get_or_create(
            ArtifactKind.DUBBING, resource_id, language, generate
        )

    async def _synthesize(self, transcript: Transcript):
        return await generate_dub_audio(
            self.synthesizer,
            transcript.segments,
            transcript.language,
            max_concurrent=self.settings.max_concurrent,
            timeout=self.settings.generation_timeout,
        )

    async def aclose(self) -> None:
        """Wait for background writes, then release the backends' HTTP clients."""
        try:
            await self.cache.flush()
        finally:
            for backend in (self.synthesizer, self.transcriber):
                close = getattr(backend, "aclose", None)
                if close is not None:
                    await close()
