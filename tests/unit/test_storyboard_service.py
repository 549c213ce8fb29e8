"""Unit tests for script parsing and scene lifecycle."""

import pytest

from models.storyboard import ContentType, SceneDraft
from services.entitlements import StaticEntitlements
from services.errors import AuthorizationError, EntitlementError, ScriptNotFoundError
from services.storyboard_service import StoryboardService


@pytest.mark.unit
class TestParseScript:
    @pytest.mark.asyncio
    async def test_parse_persists_ordered_scenes(self, storyboard_service, store):
        script = await store.add_script(
            "user-1",
            "video-1",
            'Welcome, everyone!\n\nJohn said: "Hi there"\n\nThanks for watching.',
        )

        scenes = await storyboard_service.parse_script_into_scenes("user-1", script.id)

        assert [s.scene_index for s in scenes] == [0, 1, 2]
        assert [s.content_type for s in scenes] == [
            ContentType.INTRO,
            ContentType.DIALOGUE,
            ContentType.OUTRO,
        ]
        assert all(s.video_id == "video-1" for s in scenes)
        assert all(s.script_id == script.id for s in scenes)
        assert await store.list_scenes(script.id, "user-1") == scenes

    @pytest.mark.asyncio
    async def test_reparse_returns_existing_scenes(self, storyboard_service, store, script, parsed_scenes):
        again = await storyboard_service.parse_script_into_scenes("user-1", script.id)

        assert [s.id for s in again] == [s.id for s in parsed_scenes]

    @pytest.mark.asyncio
    async def test_replace_deletes_old_scenes_and_their_assets(
        self, storyboard_service, voiceover_service, store, blob_store, runner, script, parsed_scenes
    ):
        image_id = await blob_store.put(b"img", "image/webp")
        await store.update_scene(parsed_scenes[0].id, "user-1", image_id=image_id)
        await voiceover_service.request_voiceover(
            "user-1", script.id, "video-1", "Hello there", "voice-1", scene_id=parsed_scenes[0].id
        )
        await runner.drain()

        fresh = await storyboard_service.parse_script_into_scenes("user-1", script.id, replace=True)

        assert len(fresh) == len(parsed_scenes)
        assert {s.id for s in fresh}.isdisjoint({s.id for s in parsed_scenes})
        assert await store.list_voiceovers(script.id, "user-1") == []
        assert blob_store.blobs == {}

    @pytest.mark.asyncio
    async def test_script_without_scenes(self, storyboard_service, store):
        script = await store.add_script("user-1", "video-1", "Too short")

        assert await storyboard_service.parse_script_into_scenes("user-1", script.id) == []

    @pytest.mark.asyncio
    async def test_missing_and_foreign_script(self, storyboard_service, script):
        with pytest.raises(ScriptNotFoundError):
            await storyboard_service.parse_script_into_scenes("user-1", "missing")
        with pytest.raises(AuthorizationError):
            await storyboard_service.parse_script_into_scenes("user-2", script.id)

    @pytest.mark.asyncio
    async def test_workspace_entitlement_required(self, store, blob_store, voiceover_service, script):
        service = StoryboardService(
            store=store,
            blob_store=blob_store,
            voiceover_service=voiceover_service,
            entitlements=StaticEntitlements(set()),
        )

        with pytest.raises(EntitlementError):
            await service.parse_script_into_scenes("user-1", script.id)

        assert await store.list_scenes(script.id, "user-1") == []


@pytest.mark.unit
class TestSceneEdits:
    @pytest.mark.asyncio
    async def test_create_scene(self, storyboard_service, script):
        scene = await storyboard_service.create_scene(
            "user-1",
            script.id,
            "video-1",
            SceneDraft(
                scene_index=7,
                scene_name="Bonus",
                scene_content="A hand-written extra scene.",
                content_type=ContentType.OTHER,
            ),
        )

        assert scene.scene_index == 7
        assert scene.content_type == ContentType.OTHER

    @pytest.mark.asyncio
    async def test_create_scene_requires_content(self, storyboard_service, script):
        with pytest.raises(ValueError):
            await storyboard_service.create_scene(
                "user-1",
                script.id,
                "video-1",
                SceneDraft(0, "Empty", "   ", ContentType.OTHER),
            )

    @pytest.mark.asyncio
    async def test_update_scene(self, storyboard_service, parsed_scenes):
        scene = await storyboard_service.update_scene(
            "user-1", parsed_scenes[1].id, scene_content="Rewritten text", emotion="happy"
        )

        assert scene.scene_content == "Rewritten text"
        assert scene.emotion == "happy"
        assert scene.content_type == parsed_scenes[1].content_type

    @pytest.mark.asyncio
    async def test_update_rejects_blank_content(self, storyboard_service, parsed_scenes):
        with pytest.raises(ValueError):
            await storyboard_service.update_scene("user-1", parsed_scenes[1].id, scene_content="  ")


@pytest.mark.unit
class TestDeleteScene:
    @pytest.mark.asyncio
    async def test_delete_cascades_to_voiceover_and_image(
        self, storyboard_service, voiceover_service, store, blob_store, runner, script, parsed_scenes
    ):
        scene = parsed_scenes[1]
        image_id = await blob_store.put(b"img", "image/webp")
        await store.update_scene(scene.id, "user-1", image_id=image_id)
        result = await voiceover_service.request_voiceover(
            "user-1", script.id, "video-1", "Hello there", "voice-1", scene_id=scene.id
        )
        await runner.drain()

        await storyboard_service.delete_scene("user-1", scene.id)

        remaining = await store.list_scenes(script.id, "user-1")
        assert [s.scene_index for s in remaining] == [0, 2, 3]
        assert await store.get_voiceover(result.voiceover_id) is None
        assert blob_store.blobs == {}

    @pytest.mark.asyncio
    async def test_shared_image_is_kept(self, storyboard_service, store, blob_store, parsed_scenes):
        image_id = await blob_store.put(b"img", "image/webp")
        await store.update_scene(parsed_scenes[0].id, "user-1", image_id=image_id)
        await store.update_scene(parsed_scenes[1].id, "user-1", image_id=image_id)

        await storyboard_service.delete_scene("user-1", parsed_scenes[0].id)

        assert image_id in blob_store.blobs

    @pytest.mark.asyncio
    async def test_delete_foreign_scene(self, storyboard_service, store, parsed_scenes):
        with pytest.raises(AuthorizationError):
            await storyboard_service.delete_scene("user-2", parsed_scenes[0].id)

        assert len(await store.list_scenes(parsed_scenes[0].script_id, "user-1")) == 4
