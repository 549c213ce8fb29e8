"""Prompts module - centralized prompt templates for AI services.

Re-exports the scene image prompts for easy importing:
    from services.prompts import build_scene_image_prompt, REFERENCE_IMAGE_ANALYZER
"""

from services.prompts.scene_images import (
    REFERENCE_IMAGE_ANALYZER,
    SCENE_IMAGE_STANDALONE,
    SCENE_IMAGE_WITH_REFERENCE,
    build_scene_image_prompt,
    format_scene_details,
)

__all__ = [
    "REFERENCE_IMAGE_ANALYZER",
    "SCENE_IMAGE_STANDALONE",
    "SCENE_IMAGE_WITH_REFERENCE",
    "build_scene_image_prompt",
    "format_scene_details",
]
