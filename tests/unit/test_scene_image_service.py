"""Unit tests for scene image generation and linking."""

import pytest

from services.entitlements import StaticEntitlements
from services.errors import AuthorizationError, EntitlementError, UpstreamServiceError
from services.scene_image_service import SceneImageService

from conftest import FakeBlobStore, FakeImageService


async def _give_image(store, blob_store, scene) -> str:
    storage_id = await blob_store.put(b"existing", "image/webp")
    await store.update_scene(scene.id, "user-1", image_id=storage_id)
    return storage_id


@pytest.mark.unit
class TestGenerateSceneImage:
    @pytest.mark.asyncio
    async def test_first_scene_has_no_reference(
        self, scene_image_service, store, image_service, entitlements, parsed_scenes
    ):
        scene = parsed_scenes[0]

        result = await scene_image_service.generate_scene_image("user-1", scene.id, "video-1")

        assert result.success is True
        assert result.used_reference is False
        assert result.reference_info is None
        assert (await store.get_scene(scene.id, "user-1")).image_id == result.storage_id
        assert scene.scene_content in image_service.prompts[0]
        assert "REFERENCE IMAGE ANALYSIS" not in image_service.prompts[0]
        assert image_service.fetched == []
        assert ("scene-image-generation", "user-1", "user-1") in entitlements.events

    @pytest.mark.asyncio
    async def test_auto_reference_uses_most_recent_prior_image(
        self, scene_image_service, store, blob_store, image_service, parsed_scenes
    ):
        await _give_image(store, blob_store, parsed_scenes[0])
        second_image = await _give_image(store, blob_store, parsed_scenes[1])

        result = await scene_image_service.generate_scene_image(
            "user-1", parsed_scenes[3].id, "video-1"
        )

        assert result.used_reference is True
        assert result.reference_info == "Reference Scene 2: Scene 2"
        assert image_service.fetched == [await blob_store.get_url(second_image)]
        assert "A woman in a red coat" in image_service.prompts[0]
        assert "REFERENCE IMAGE ANALYSIS" in image_service.prompts[0]

    @pytest.mark.asyncio
    async def test_none_selection_skips_reference(
        self, scene_image_service, store, blob_store, image_service, parsed_scenes
    ):
        await _give_image(store, blob_store, parsed_scenes[0])

        result = await scene_image_service.generate_scene_image(
            "user-1", parsed_scenes[1].id, "video-1", reference_selection="none"
        )

        assert result.used_reference is False
        assert image_service.fetched == []

    @pytest.mark.asyncio
    async def test_explicit_reference_scene(
        self, scene_image_service, store, blob_store, parsed_scenes
    ):
        await _give_image(store, blob_store, parsed_scenes[0])
        await _give_image(store, blob_store, parsed_scenes[1])

        result = await scene_image_service.generate_scene_image(
            "user-1", parsed_scenes[2].id, "video-1", reference_scene_id=parsed_scenes[0].id
        )

        assert result.reference_info == "Reference Scene 1: Scene 1"

    @pytest.mark.asyncio
    async def test_vision_failure_degrades_to_no_reference(
        self, scene_image_service, store, blob_store, image_service, parsed_scenes
    ):
        await _give_image(store, blob_store, parsed_scenes[0])
        image_service.describe_fails = True

        result = await scene_image_service.generate_scene_image(
            "user-1", parsed_scenes[1].id, "video-1"
        )

        assert result.success is True
        assert result.used_reference is False
        assert "REFERENCE IMAGE ANALYSIS" not in image_service.prompts[0]

    @pytest.mark.asyncio
    async def test_reference_without_stored_blob_is_skipped(
        self, scene_image_service, store, image_service, parsed_scenes
    ):
        await store.update_scene(parsed_scenes[0].id, "user-1", image_id="gone.webp")

        result = await scene_image_service.generate_scene_image(
            "user-1", parsed_scenes[1].id, "video-1"
        )

        assert result.used_reference is False
        assert image_service.fetched == []

    @pytest.mark.asyncio
    async def test_relative_reference_url_is_made_absolute(
        self, store, image_service, entitlements, parsed_scenes
    ):
        blob_store = FakeBlobStore(base_url="/api/blobs")
        service = SceneImageService(
            store=store,
            image_service=image_service,
            blob_store=blob_store,
            entitlements=entitlements,
            asset_base_url="http://app.test",
        )
        storage_id = await _give_image(store, blob_store, parsed_scenes[0])

        await service.generate_scene_image("user-1", parsed_scenes[1].id, "video-1")

        assert image_service.fetched == [f"http://app.test/api/blobs/{storage_id}"]

    @pytest.mark.asyncio
    async def test_overrides_replace_stored_scene_fields(
        self, scene_image_service, image_service, parsed_scenes
    ):
        await scene_image_service.generate_scene_image(
            "user-1",
            parsed_scenes[0].id,
            "video-1",
            scene_content="A lighthouse in a storm",
            emotion="serious",
            visual_elements=["crashing waves"],
        )

        prompt = image_service.prompts[0]
        assert "A lighthouse in a storm" in prompt
        assert "serious" in prompt
        assert "crashing waves" in prompt

    @pytest.mark.asyncio
    async def test_latest_image_wins(self, scene_image_service, store, parsed_scenes):
        scene = parsed_scenes[0]

        first = await scene_image_service.generate_scene_image("user-1", scene.id, "video-1")
        second = await scene_image_service.generate_scene_image("user-1", scene.id, "video-1")

        assert first.storage_id != second.storage_id
        assert (await store.get_scene(scene.id, "user-1")).image_id == second.storage_id


@pytest.mark.unit
class TestGenerateSceneImageFailures:
    @pytest.mark.asyncio
    async def test_empty_payload_keeps_previous_image(
        self, store, blob_store, entitlements, parsed_scenes
    ):
        service = SceneImageService(
            store=store,
            image_service=FakeImageService(image=b""),
            blob_store=blob_store,
            entitlements=entitlements,
        )
        previous = await _give_image(store, blob_store, parsed_scenes[0])

        with pytest.raises(UpstreamServiceError):
            await service.generate_scene_image("user-1", parsed_scenes[0].id, "video-1")

        assert (await store.get_scene(parsed_scenes[0].id, "user-1")).image_id == previous
        assert list(blob_store.blobs) == [previous]

    @pytest.mark.asyncio
    async def test_provider_error_propagates(
        self, scene_image_service, store, image_service, parsed_scenes
    ):
        image_service.fail_with = "content policy"

        with pytest.raises(UpstreamServiceError, match="content policy"):
            await scene_image_service.generate_scene_image(
                "user-1", parsed_scenes[0].id, "video-1"
            )

        assert (await store.get_scene(parsed_scenes[0].id, "user-1")).image_id is None

    @pytest.mark.asyncio
    async def test_entitlement_required(self, store, image_service, blob_store, parsed_scenes):
        service = SceneImageService(
            store=store,
            image_service=image_service,
            blob_store=blob_store,
            entitlements=StaticEntitlements({"storyboard-workspace"}),
        )

        with pytest.raises(EntitlementError) as exc_info:
            await service.generate_scene_image("user-1", parsed_scenes[0].id, "video-1")

        assert exc_info.value.feature == "scene-image-generation"
        assert image_service.prompts == []

    @pytest.mark.asyncio
    async def test_foreign_scene(self, scene_image_service, image_service, parsed_scenes):
        with pytest.raises(AuthorizationError):
            await scene_image_service.generate_scene_image(
                "user-2", parsed_scenes[0].id, "video-1"
            )

        assert image_service.prompts == []
