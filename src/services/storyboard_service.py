"""Storyboard service - script parsing and scene lifecycle orchestration."""

import logging
from typing import Any

from models.storyboard import Scene, SceneDraft
from services.blob_store import BlobStore
from services.entitlements import EntitlementClient, FeatureFlag, require_feature
from services.script_segmenter import ScriptSegmenter
from services.storyboard_store import StoryboardStore
from services.voiceover_service import VoiceoverService

logger = logging.getLogger(__name__)


class StoryboardService:
    """Turns scripts into scenes and manages scene edits and deletion."""

    def __init__(
        self,
        store: StoryboardStore,
        blob_store: BlobStore,
        voiceover_service: VoiceoverService,
        entitlements: EntitlementClient,
        segmenter: ScriptSegmenter | None = None,
    ):
        """Initialize the storyboard service.

        Args:
            store: Scene storage
            blob_store: Blob storage holding scene images
            voiceover_service: Used to cascade voiceover deletion
            entitlements: Feature flag backend
            segmenter: Script segmenter (keyword classifier by default)
        """
        self.store = store
        self.blob_store = blob_store
        self.voiceover_service = voiceover_service
        self.entitlements = entitlements
        self.segmenter = segmenter or ScriptSegmenter()

    async def parse_script_into_scenes(
        self,
        user_id: str,
        script_id: str,
        replace: bool = False,
    ) -> list[Scene]:
        """Segment a script and persist its scenes.

        Parsing a script that already has scenes returns them unchanged unless
        replace is set, in which case the old scenes are deleted (with their
        voiceovers and images) first.

        Raises:
            EntitlementError: If the storyboard workspace is not enabled
            ScriptNotFoundError: If the script does not exist
            AuthorizationError: If the script is another user's
        """
        await require_feature(self.entitlements, user_id, FeatureFlag.STORYBOARD_WORKSPACE)

        script = await self.store.get_script(script_id, user_id)
        existing = await self.store.list_scenes(script_id, user_id)
        if existing and not replace:
            logger.info(f"Script {script_id} already has {len(existing)} scenes")
            return existing

        for scene in existing:
            await self.delete_scene(user_id, scene.id)

        drafts = self.segmenter.segment(script.script)
        if not drafts:
            logger.warning(f"Script {script_id} produced no scenes")
            return []

        await self.store.create_scenes(script_id, user_id, script.video_id, drafts)
        return await self.store.list_scenes(script_id, user_id)

    async def list_scenes(self, user_id: str, script_id: str) -> list[Scene]:
        """Scenes of a script in scene_index order."""
        return await self.store.list_scenes(script_id, user_id)

    async def create_scene(
        self,
        user_id: str,
        script_id: str,
        video_id: str,
        draft: SceneDraft,
    ) -> Scene:
        """Add a single scene (e.g. inserted by hand in the workspace)."""
        if not draft.scene_content or not draft.scene_content.strip():
            raise ValueError("Scene content is required")
        scene_id = await self.store.create_scene(script_id, user_id, video_id, draft)
        return await self.store.get_scene(scene_id, user_id)

    async def update_scene(self, user_id: str, scene_id: str, **fields: Any) -> Scene:
        """Edit a scene's text or metadata. Only supplied fields change."""
        if "scene_content" in fields and fields["scene_content"] is not None:
            if not str(fields["scene_content"]).strip():
                raise ValueError("Scene content cannot be empty")
        return await self.store.update_scene(scene_id, user_id, **fields)

    async def delete_scene(self, user_id: str, scene_id: str) -> None:
        """Delete a scene together with its voiceover and, if unshared, its image.

        Other scenes keep their scene_index values; gaps are allowed.
        """
        scene = await self.store.get_scene(scene_id, user_id)

        voiceover = await self.store.find_voiceover_by_scene(scene_id, user_id)
        if voiceover is not None:
            await self.voiceover_service.delete_voiceover(user_id, voiceover.id)

        await self.store.delete_scene(scene_id, user_id)

        if scene.image_id and await self.store.count_scenes_with_image(scene.image_id) == 0:
            try:
                await self.blob_store.delete(scene.image_id)
            except Exception as e:
                logger.warning(f"Failed to delete image {scene.image_id} of scene {scene_id}: {e}")
