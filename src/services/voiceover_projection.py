"""Read path for voiceover job status with freshly resolved playback URLs.

Playback URLs are never persisted. Storage URLs may be time limited, so they
are resolved from storage_id on every read; records without audio get
``url: None``.
"""

import asyncio
import logging

from models.voiceover import Voiceover, VoiceoverStatus
from services.blob_store import BlobStore
from services.errors import SceneNotFoundError, ScriptNotFoundError
from services.storyboard_store import StoryboardStore

logger = logging.getLogger(__name__)


class VoiceoverProjection:
    """Exposes voiceover records plus playback URLs to callers."""

    def __init__(self, store: StoryboardStore, blob_store: BlobStore):
        self.store = store
        self.blob_store = blob_store

    async def _with_url(self, voiceover: Voiceover) -> dict:
        data = voiceover.to_dict()
        data["url"] = None
        if voiceover.status == VoiceoverStatus.COMPLETED and voiceover.storage_id:
            data["url"] = await self.blob_store.get_url(voiceover.storage_id)
        return data

    async def get_scene_voiceover(self, scene_id: str, user_id: str) -> dict | None:
        """Current voiceover of a scene with its playback URL, or None.

        Raises:
            AuthorizationError: If the scene belongs to another user
        """
        try:
            await self.store.get_scene(scene_id, user_id)
        except SceneNotFoundError:
            # Scene deleted; its voiceover may still exist
            pass

        voiceover = await self.store.find_voiceover_by_scene(scene_id, user_id)
        if voiceover is None:
            return None
        return await self._with_url(voiceover)

    async def get_voiceovers(self, script_id: str, user_id: str) -> list[dict]:
        """All of a user's voiceovers for a script, with playback URLs.

        Raises:
            AuthorizationError: If the script belongs to another user
        """
        try:
            await self.store.get_script(script_id, user_id)
        except ScriptNotFoundError:
            pass

        voiceovers = await self.store.list_voiceovers(script_id, user_id)
        return list(await asyncio.gather(*(self._with_url(v) for v in voiceovers)))
