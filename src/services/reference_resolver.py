"""Reference scene selection for visually consistent scene images."""

from collections.abc import Iterable

from models.storyboard import Scene

AUTO = "auto"
NONE = "none"


def reference_candidates(scenes: Iterable[Scene], target_scene_index: int) -> list[Scene]:
    """Scenes before the target that already have an image, in index order."""
    candidates = [
        scene
        for scene in scenes
        if scene.scene_index < target_scene_index and scene.image_id is not None
    ]
    return sorted(candidates, key=lambda scene: scene.scene_index)


def resolve_reference(
    scenes: Iterable[Scene],
    target_scene_index: int,
    user_selection: str | None = AUTO,
) -> str | None:
    """Pick the scene whose image should steer a new scene's image.

    Args:
        scenes: Scenes of the script (any order)
        target_scene_index: Index of the scene about to get an image
        user_selection: "auto", "none", or an explicit scene id. An explicit id
            is returned as-is; the UI only offers valid candidates.

    Returns:
        The reference scene id, or None. "auto" picks the most recent prior
        scene with an image, which keeps adjacent scenes consistent.
    """
    selection = user_selection or AUTO
    if selection == NONE:
        return None
    if selection != AUTO:
        return selection

    candidates = reference_candidates(scenes, target_scene_index)
    if not candidates:
        return None
    return candidates[-1].id
