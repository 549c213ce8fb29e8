"""Voiceover job models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

DEFAULT_VOICE_PROVIDER = "ElevenLabs"


class VoiceoverStatus(str, Enum):
    """Status of a voiceover generation job."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Voiceover:
    """A voiceover job record.

    ``storage_id`` is set only once the job has completed and ``error_message``
    only once it has failed. Construction rejects any other combination.
    """

    id: str
    script_id: str
    user_id: str
    video_id: str
    text: str
    voice_name: str
    voice_provider: str = DEFAULT_VOICE_PROVIDER
    scene_id: str | None = None
    status: VoiceoverStatus = VoiceoverStatus.PROCESSING
    storage_id: str | None = None
    duration: int | None = None
    error_message: str | None = None
    generation: int = 1
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        self.status = VoiceoverStatus(self.status)
        if (self.storage_id is not None) != (self.status == VoiceoverStatus.COMPLETED):
            raise ValueError(
                f"Voiceover {self.id}: storage_id must be set exactly when completed "
                f"(status={self.status.value})"
            )
        if (self.error_message is not None) != (self.status == VoiceoverStatus.FAILED):
            raise ValueError(
                f"Voiceover {self.id}: error_message must be set exactly when failed "
                f"(status={self.status.value})"
            )

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "script_id": self.script_id,
            "scene_id": self.scene_id,
            "user_id": self.user_id,
            "video_id": self.video_id,
            "storage_id": self.storage_id,
            "voice_name": self.voice_name,
            "voice_provider": self.voice_provider,
            "duration": self.duration,
            "text": self.text,
            "status": self.status.value,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class VoiceoverRequestResult:
    """Returned to the caller as soon as a voiceover job is scheduled."""

    voiceover_id: str
    status: VoiceoverStatus = VoiceoverStatus.PROCESSING

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {"voiceover_id": self.voiceover_id, "status": self.status.value}


@dataclass
class VoiceInfo:
    """A voice offered by the speech provider."""

    voice_id: str
    name: str
    category: str = "custom"
    description: str | None = None
    labels: dict[str, str] = field(default_factory=dict)
    preview_url: str | None = None

    @property
    def gender(self) -> str | None:
        return self.labels.get("gender")

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "voice_id": self.voice_id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "labels": self.labels,
            "preview_url": self.preview_url,
            "gender": self.gender,
        }
