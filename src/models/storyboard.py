"""Models for storyboard scenes and the scripts they are cut from."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ContentType(str, Enum):
    """Kind of content a scene carries."""

    INTRO = "intro"
    ACTION = "action"
    DIALOGUE = "dialogue"
    TRANSITION = "transition"
    OUTRO = "outro"
    OTHER = "other"


@dataclass
class Script:
    """A generated script. Read-only to the storyboard core."""

    id: str
    user_id: str
    video_id: str
    script: str
    title: str | None = None
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "video_id": self.video_id,
            "script": self.script,
            "title": self.title,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class SceneDraft:
    """A scene produced by the segmenter, before it is persisted."""

    scene_index: int
    scene_name: str
    scene_content: str
    content_type: ContentType
    emotion: str | None = None
    visual_elements: list[str] | None = None
    duration: int | None = None
    notes: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "scene_index": self.scene_index,
            "scene_name": self.scene_name,
            "scene_content": self.scene_content,
            "content_type": self.content_type.value,
            "emotion": self.emotion,
            "visual_elements": self.visual_elements,
            "duration": self.duration,
            "notes": self.notes,
        }


@dataclass
class Scene:
    """A persisted storyboard scene."""

    id: str
    script_id: str
    user_id: str
    video_id: str
    scene_index: int
    scene_name: str
    scene_content: str
    content_type: ContentType
    emotion: str | None = None
    visual_elements: list[str] | None = None
    image_id: str | None = None
    voiceover_id: str | None = None
    duration: int | None = None
    notes: str | None = None
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "script_id": self.script_id,
            "user_id": self.user_id,
            "video_id": self.video_id,
            "scene_index": self.scene_index,
            "scene_name": self.scene_name,
            "scene_content": self.scene_content,
            "content_type": self.content_type.value,
            "emotion": self.emotion,
            "visual_elements": self.visual_elements,
            "image_id": self.image_id,
            "voiceover_id": self.voiceover_id,
            "duration": self.duration,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class SceneImageResult:
    """Outcome of a scene image generation."""

    success: bool
    storage_id: str
    used_reference: bool = False
    reference_info: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "success": self.success,
            "storage_id": self.storage_id,
            "used_reference": self.used_reference,
            "reference_info": self.reference_info,
        }
