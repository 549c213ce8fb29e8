"""Pydantic request/response models for the SceneCraft API."""

from pydantic import BaseModel, ConfigDict, Field

from models.storyboard import ContentType

# =============================================================================
# Response Models
# =============================================================================


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str

    model_config = {"json_schema_extra": {"examples": [{"message": "Operation completed successfully"}]}}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    pending_jobs: int = 0

    model_config = {"json_schema_extra": {"examples": [{"status": "healthy", "pending_jobs": 0}]}}


# =============================================================================
# Storyboard Request Models
# =============================================================================


class ScriptCreateRequest(BaseModel):
    """Register a generated script with the storyboard workspace."""

    video_id: str = Field(..., min_length=1)
    script: str = Field(..., min_length=1)
    title: str | None = None


class ParseScriptRequest(BaseModel):
    """Segment a script into scenes."""

    replace: bool = Field(default=False, description="Delete existing scenes and re-parse")


class SceneCreateRequest(BaseModel):
    """Add one scene by hand."""

    video_id: str = Field(..., min_length=1)
    scene_index: int = Field(..., ge=0)
    scene_name: str = Field(..., min_length=1)
    scene_content: str = Field(..., min_length=1)
    content_type: ContentType = ContentType.OTHER
    emotion: str | None = None
    visual_elements: list[str] | None = None
    duration: int | None = Field(default=None, ge=0)
    notes: str | None = None


class SceneUpdateRequest(BaseModel):
    """Partial scene edit. Omitted fields are left untouched."""

    scene_content: str | None = Field(default=None, min_length=1)
    scene_name: str | None = None
    content_type: ContentType | None = None
    emotion: str | None = None
    visual_elements: list[str] | None = None
    duration: int | None = Field(default=None, ge=0)
    notes: str | None = None


class SceneImageRequest(BaseModel):
    """Generate an image for a scene."""

    video_id: str = Field(..., min_length=1)
    scene_content: str | None = None
    emotion: str | None = None
    visual_elements: list[str] | None = None
    reference_scene_id: str | None = Field(
        default=None, description="Explicit reference scene; overrides reference_selection"
    )
    reference_selection: str = Field(
        default="auto", description='"auto" (most recent prior image) or "none"'
    )


# =============================================================================
# Voiceover Request Models
# =============================================================================


class VoiceoverRequest(BaseModel):
    """Request a voiceover for a script or one of its scenes."""

    script_id: str = Field(..., min_length=1)
    video_id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    voice_name: str = Field(..., min_length=1, description="Provider voice ID")
    scene_id: str | None = None
    voice_provider: str = "ElevenLabs"


class VoiceoverCallbackRequest(BaseModel):
    """Result posted back by an external synthesis worker."""

    model_config = ConfigDict(populate_by_name=True)

    voiceover_id: str = Field(..., alias="voiceoverId", min_length=1)
    success: bool = False
    audio_base64: str | None = Field(default=None, alias="audioBase64")
    error: str | None = None
    generation: int | None = None
    duration: float | None = Field(default=None, ge=0, description="Seconds of audio measured by the worker")
