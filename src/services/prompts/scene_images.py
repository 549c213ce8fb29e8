"""Storyboard scene image prompt templates.

Contains prompts for:
- REFERENCE_IMAGE_ANALYZER: Vision prompt describing a prior scene for consistency
- SCENE_IMAGE_WITH_REFERENCE: Scene prompt anchored to a reference description
- SCENE_IMAGE_STANDALONE: Cinematic scene prompt with no reference
"""

REFERENCE_IMAGE_ANALYZER = (
    "Analyze this storyboard image and describe the key visual elements for consistency: "
    "character appearance (facial features, hair, clothing), art style, lighting, "
    "color palette, and overall mood. Be specific and detailed for maintaining visual "
    "consistency in subsequent scenes."
)

# Template placeholders: {reference_analysis}, {scene_content}, {details}
SCENE_IMAGE_WITH_REFERENCE = """Create a new scene image that maintains VISUAL CONSISTENCY with this reference description:

REFERENCE IMAGE ANALYSIS:
{reference_analysis}

NEW SCENE DESCRIPTION:
{scene_content}{details}

IMPORTANT: Maintain the same character appearance, art style, lighting, and color palette as described in the reference analysis while adapting to the new scene context above."""

# Template placeholders: {scene_content}, {details}
SCENE_IMAGE_STANDALONE = """Create a vivid, cinematic image for the following scene from a video storyboard:

{scene_content}{details}

Create a high-quality, professional image suitable for a video production storyboard. Use realistic style with good lighting and composition."""


def format_scene_details(
    emotion: str | None,
    visual_elements: list[str] | None,
    with_reference: bool,
) -> str:
    """Render the optional emotion and visual-element lines of a scene prompt.

    Args:
        emotion: Emotional tone tag, if any
        visual_elements: Short visual phrases extracted from the scene, if any
        with_reference: Use the wording of the reference-anchored prompt

    Returns:
        Text to append after the scene content (empty when nothing applies)
    """
    details = ""
    if emotion:
        if with_reference:
            details += f"\n\nEMOTIONAL TONE: {emotion}"
        else:
            details += f"\n\nThe emotional tone should be: {emotion}"
    if visual_elements:
        joined = ", ".join(visual_elements)
        if with_reference:
            details += f"\n\nVISUAL ELEMENTS TO INCLUDE: {joined}"
        else:
            details += f"\n\nImportant visual elements to include: {joined}"
    return details


def build_scene_image_prompt(
    scene_content: str,
    emotion: str | None = None,
    visual_elements: list[str] | None = None,
    reference_analysis: str | None = None,
) -> str:
    """Build the image generation prompt for a storyboard scene.

    Args:
        scene_content: Scene text to depict
        emotion: Optional emotional tone
        visual_elements: Optional visual elements to include
        reference_analysis: Vision description of a reference scene image

    Returns:
        The full prompt string
    """
    if reference_analysis:
        return SCENE_IMAGE_WITH_REFERENCE.format(
            reference_analysis=reference_analysis,
            scene_content=scene_content,
            details=format_scene_details(emotion, visual_elements, with_reference=True),
        )
    return SCENE_IMAGE_STANDALONE.format(
        scene_content=scene_content,
        details=format_scene_details(emotion, visual_elements, with_reference=False),
    )
