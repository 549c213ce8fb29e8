# Data models for the storyboard workspace
from .storyboard import ContentType, Scene, SceneDraft, SceneImageResult, Script
from .voiceover import (
    DEFAULT_VOICE_PROVIDER,
    VoiceInfo,
    Voiceover,
    VoiceoverRequestResult,
    VoiceoverStatus,
)

__all__ = [
    # Storyboard
    "ContentType",
    "Scene",
    "SceneDraft",
    "SceneImageResult",
    "Script",
    # Voiceovers
    "DEFAULT_VOICE_PROVIDER",
    "VoiceInfo",
    "Voiceover",
    "VoiceoverRequestResult",
    "VoiceoverStatus",
]
