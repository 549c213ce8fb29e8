"""Unit tests for reference scene selection."""

import pytest

from models.storyboard import ContentType, Scene
from services.reference_resolver import reference_candidates, resolve_reference


def _scene(index: int, image_id: str | None = None) -> Scene:
    return Scene(
        id=f"scene-{index}",
        script_id="script-1",
        user_id="user-1",
        video_id="video-1",
        scene_index=index,
        scene_name=f"Scene {index + 1}",
        scene_content=f"Content of scene {index + 1}",
        content_type=ContentType.ACTION,
        image_id=image_id,
    )


@pytest.fixture
def scenes() -> list[Scene]:
    """Scenes 0..3 where only 0 and 1 have images, in shuffled order."""
    return [_scene(3), _scene(1, "img-1"), _scene(0, "img-0"), _scene(2)]


@pytest.mark.unit
class TestResolveReference:
    def test_auto_picks_most_recent_prior_image(self, scenes):
        assert resolve_reference(scenes, 3, "auto") == "scene-1"

    def test_auto_is_default(self, scenes):
        assert resolve_reference(scenes, 2) == "scene-1"

    def test_auto_ignores_later_scenes(self, scenes):
        assert resolve_reference(scenes, 1, "auto") == "scene-0"

    def test_auto_without_candidates(self, scenes):
        assert resolve_reference(scenes, 0, "auto") is None
        assert resolve_reference([], 5, "auto") is None

    def test_none_disables_reference(self, scenes):
        assert resolve_reference(scenes, 3, "none") is None

    def test_explicit_id_is_returned_unchanged(self, scenes):
        assert resolve_reference(scenes, 3, "scene-0") == "scene-0"
        assert resolve_reference(scenes, 0, "anything-else") == "anything-else"

    def test_missing_selection_means_auto(self, scenes):
        assert resolve_reference(scenes, 3, None) == "scene-1"


@pytest.mark.unit
def test_reference_candidates_sorted_and_filtered(scenes):
    candidates = reference_candidates(scenes, 3)

    assert [c.id for c in candidates] == ["scene-0", "scene-1"]
