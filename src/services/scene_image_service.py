"""Scene image generation - reference resolution, prompting, storage and linking."""

import logging
from typing import Protocol
from urllib.parse import urljoin

from models.storyboard import Scene, SceneImageResult
from services.blob_store import BlobStore
from services.entitlements import EntitlementClient, FeatureFlag, require_feature, track_usage
from services.image_generation_service import (
    DEFAULT_IMAGE_QUALITY,
    DEFAULT_IMAGE_SIZE,
    ImageGenerationError,
)
from services.prompts.scene_images import build_scene_image_prompt
from services.reference_resolver import AUTO, resolve_reference
from services.storyboard_store import StoryboardStore

logger = logging.getLogger(__name__)


class ImageService(Protocol):
    """What the orchestrator needs from the image provider."""

    content_type: str

    async def generate(self, prompt: str, size: str, quality: str) -> bytes: ...

    async def fetch_data_uri(self, url: str) -> str: ...

    async def describe(self, image_data_uri: str) -> str: ...


class SceneImageService:
    """Generates a scene's image synchronously and links it to the scene.

    On success the scene's image_id points at the new blob (latest wins). On
    any hard failure nothing is persisted and the scene keeps its previous
    image.
    """

    def __init__(
        self,
        store: StoryboardStore,
        image_service: ImageService,
        blob_store: BlobStore,
        entitlements: EntitlementClient,
        image_size: str = DEFAULT_IMAGE_SIZE,
        image_quality: str = DEFAULT_IMAGE_QUALITY,
        asset_base_url: str = "",
    ):
        """Initialize the scene image service.

        Args:
            store: Scene storage
            image_service: Image generation and vision provider
            blob_store: Where generated images are stored
            entitlements: Feature flag and usage backend
            image_size: Requested image size
            image_quality: Requested image quality
            asset_base_url: Base for relative blob URLs when fetching references
        """
        self.store = store
        self.image_service = image_service
        self.blob_store = blob_store
        self.entitlements = entitlements
        self.image_size = image_size
        self.image_quality = image_quality
        self.asset_base_url = asset_base_url

    async def generate_scene_image(
        self,
        user_id: str,
        scene_id: str,
        video_id: str,
        scene_content: str | None = None,
        emotion: str | None = None,
        visual_elements: list[str] | None = None,
        reference_scene_id: str | None = None,
        reference_selection: str = AUTO,
    ) -> SceneImageResult:
        """Generate, store and link an image for one scene.

        Args:
            user_id: Caller
            scene_id: Scene to illustrate
            video_id: Source video, for logging
            scene_content: Text to depict (defaults to the stored scene text)
            emotion: Emotional tone (defaults to the stored scene emotion)
            visual_elements: Visual phrases (default to the stored ones)
            reference_scene_id: Explicit reference scene. When omitted the
                reference is resolved from reference_selection.
            reference_selection: "auto" or "none", used when reference_scene_id
                is omitted

        Returns:
            SceneImageResult with the new storage id

        Raises:
            EntitlementError: If scene image generation is not enabled
            SceneNotFoundError: If the scene does not exist
            AuthorizationError: If the scene is another user's
            UpstreamServiceError: If the image service fails or returns nothing
        """
        await require_feature(self.entitlements, user_id, FeatureFlag.SCENE_IMAGE_GENERATION)

        scene = await self.store.get_scene(scene_id, user_id)
        content = scene_content or scene.scene_content
        emotion = emotion if emotion is not None else scene.emotion
        if visual_elements is None:
            visual_elements = scene.visual_elements

        if reference_scene_id is None:
            scenes = await self.store.list_scenes(scene.script_id, user_id)
            reference_scene_id = resolve_reference(scenes, scene.scene_index, reference_selection)

        reference_analysis = ""
        reference_info = None
        if reference_scene_id and reference_scene_id != scene_id:
            reference_analysis, reference_info = await self._describe_reference(
                reference_scene_id, user_id
            )

        prompt = build_scene_image_prompt(
            content,
            emotion=emotion,
            visual_elements=visual_elements,
            reference_analysis=reference_analysis or None,
        )
        if reference_analysis:
            logger.info(f"Generating image for scene {scene_id} with reference from {reference_info}")
        else:
            logger.info(f"Generating image for scene {scene_id} without reference")

        try:
            image_bytes = await self.image_service.generate(
                prompt, size=self.image_size, quality=self.image_quality
            )
            storage_id = await self._store_and_link(scene, user_id, image_bytes)
        except Exception as e:
            logger.error(
                f"Scene image generation failed for scene {scene_id} "
                f"(video {video_id}, reference {reference_scene_id}): {e}"
            )
            raise

        await track_usage(self.entitlements, user_id, FeatureFlag.SCENE_IMAGE_GENERATION)

        return SceneImageResult(
            success=True,
            storage_id=storage_id,
            used_reference=bool(reference_analysis),
            reference_info=reference_info,
        )

    async def _store_and_link(self, scene: Scene, user_id: str, image_bytes: bytes) -> str:
        if not image_bytes:
            raise ImageGenerationError("Image service returned an empty image")

        storage_id = await self.blob_store.put(image_bytes, self.image_service.content_type)
        try:
            await self.store.update_scene(scene.id, user_id, image_id=storage_id)
        except Exception:
            await self.blob_store.delete(storage_id)
            raise
        logger.info(f"Linked image {storage_id} to scene {scene.id}")
        return storage_id

    async def _describe_reference(self, reference_scene_id: str, user_id: str) -> tuple[str, str | None]:
        """Describe a reference scene's image. Never raises.

        Returns:
            (analysis, reference_info); analysis is empty when anything failed
        """
        try:
            reference = await self.store.get_scene(reference_scene_id, user_id)
            if not reference.image_id:
                logger.info(f"Reference scene {reference_scene_id} has no image")
                return "", None

            url = await self.blob_store.get_url(reference.image_id)
            if not url:
                logger.warning(f"Reference image {reference.image_id} has no URL")
                return "", None

            if self.asset_base_url and url.startswith("/"):
                url = urljoin(self.asset_base_url, url)

            data_uri = await self.image_service.fetch_data_uri(url)
            analysis = await self.image_service.describe(data_uri)
        except Exception as e:
            logger.warning(f"Failed to process reference scene {reference_scene_id}: {e}")
            return "", None

        info = f"Reference Scene {reference.scene_index + 1}: {reference.scene_name}"
        return analysis, info if analysis else None
