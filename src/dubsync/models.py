"""
Data models for the content synchronization pipeline.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Resource:
    """A learning asset (video). Only ``file_url`` is read by the pipeline."""

    id: str
    file_url: str
    title: str = ""
    description: str = ""
    subject: str = ""
    language: str = ""  # original spoken language
    uploader_id: str = ""
    created_at: str = ""

    @classmethod
    def from_document(cls, resource_id: str, data: dict) -> "Resource":
        return cls(
            id=resource_id,
            file_url=str(data.get("fileUrl", "")),
            title=str(data.get("title", "")),
            description=str(data.get("description", "")),
            subject=str(data.get("subject", "")),
            language=str(data.get("language", "")),
            uploader_id=str(data.get("uploaderId", "")),
            created_at=str(data.get("createdAt", "")),
        )

    def to_document(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "subject": self.subject,
            "language": self.language,
            "fileUrl": self.file_url,
            "uploaderId": self.uploader_id,
            "createdAt": self.created_at or utc_now_iso(),
        }


@dataclass
class TranscriptSegment:
    """A translated speech segment bounded by "MM:SS" timecodes."""

    start: str
    end: str
    text: str

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end, "text": self.text}


@dataclass
class DubSegment(TranscriptSegment):
    """A transcript segment plus the synthesized audio for its slot.

    ``start``/``end`` are the video window the audio must occupy, not the
    natural duration of the clip.
    """

    audio_data_uri: str = ""

    def to_dict(self) -> dict:
        out = super().to_dict()
        out["audioDataUri"] = self.audio_data_uri
        return out


@dataclass
class Transcript:
    """One transcript per (resource, language)."""

    resource_id: str
    language: str
    segments: list[TranscriptSegment]
    created_at: str = field(default_factory=utc_now_iso)

    def is_complete(self) -> bool:
        return bool(self.segments)

    def to_document(self) -> dict:
        return {
            "resourceId": self.resource_id,
            "language": self.language,
            "segments": [s.to_dict() for s in self.segments],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_document(cls, data: dict) -> "Transcript":
        return cls(
            resource_id=str(data["resourceId"]),
            language=str(data["language"]),
            segments=[
                TranscriptSegment(start=str(s["start"]), end=str(s["end"]), text=str(s["text"]))
                for s in data.get("segments") or []
            ],
            created_at=str(data.get("createdAt", "")),
        )


@dataclass
class Dubbing:
    """One dubbing per (resource, language); requires the matching transcript."""

    resource_id: str
    language: str
    segments: list[DubSegment]
    created_at: str = field(default_factory=utc_now_iso)

    def is_complete(self) -> bool:
        return bool(self.segments) and all(s.audio_data_uri for s in self.segments)

    def to_document(self) -> dict:
        return {
            "resourceId": self.resource_id,
            "language": self.language,
            "segments": [s.to_dict() for s in self.segments],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_document(cls, data: dict) -> "Dubbing":
        return cls(
            resource_id=str(data["resourceId"]),
            language=str(data["language"]),
            segments=[
                DubSegment(
                    start=str(s["start"]),
                    end=str(s["end"]),
                    text=str(s["text"]),
                    audio_data_uri=str(s.get("audioDataUri") or ""),
                )
                for s in data.get("segments") or []
            ],
            created_at=str(data.get("createdAt", "")),
        )


@dataclass(frozen=True)
class VoiceConfig:
    """A TTS voice: BCP-47 language code and provider voice name."""

    language_code: str
    name: str
