"""Service construction and dependency injection for the SceneCraft API.

This is the only place that builds clients from configuration. Everything
below the API receives its collaborators through constructors.
"""

import logging
import secrets
from dataclasses import dataclass, field

from fastapi import Header, HTTPException, Request

from services.blob_store import BlobStore, LocalBlobStore, R2BlobStore
from services.entitlements import EntitlementClient, SchematicClient, StaticEntitlements
from services.image_generation_service import ImageGenerationService
from services.job_runner import BackgroundJobRunner
from services.scene_image_service import SceneImageService
from services.storyboard_service import StoryboardService
from services.storyboard_store import StoryboardStore
from services.tts_service import TTSService
from services.voiceover_projection import VoiceoverProjection
from services.voiceover_service import VoiceoverService

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/voiceover/callback"


@dataclass
class ServiceContainer:
    """All long-lived services of one application instance."""

    store: StoryboardStore
    blob_store: BlobStore
    entitlements: EntitlementClient
    runner: BackgroundJobRunner
    storyboard: StoryboardService
    scene_images: SceneImageService
    voiceovers: VoiceoverService
    projection: VoiceoverProjection
    closeables: list = field(default_factory=list)
    callback_secret: str = ""

    async def start(self) -> None:
        """Connect storage and resume interrupted voiceover jobs."""
        if self.store.db is None:
            await self.store.connect()
        await self.voiceovers.resume_processing()

    async def stop(self) -> None:
        """Stop background jobs and release connections."""
        await self.runner.shutdown()
        for closeable in self.closeables:
            try:
                await closeable.close()
            except Exception as e:
                logger.warning(f"Error closing {type(closeable).__name__}: {e}")
        await self.store.close()


def build_blob_store(config: dict) -> BlobStore:
    """Blob store for the configured backend."""
    if config.get("blob_backend") == "r2":
        return R2BlobStore(
            account_id=config["r2_account_id"],
            access_key_id=config["r2_access_key_id"],
            secret_access_key=config["r2_secret_access_key"],
            bucket_name=config.get("r2_bucket_name", "scenecraft-media"),
            url_expires_in=config.get("r2_url_expires_in", 3600),
        )
    return LocalBlobStore(
        root_dir=config["local_blob_dir"],
        base_url=config.get("local_blob_base_url", "/api/blobs"),
    )


def build_entitlements(config: dict) -> EntitlementClient:
    """Schematic when a key is configured, otherwise a static allow-list."""
    if config.get("schematic_api_key"):
        return SchematicClient(config["schematic_api_key"])
    return StaticEntitlements(config.get("enabled_features"))


def build_services(
    config: dict,
    store: StoryboardStore | None = None,
    blob_store: BlobStore | None = None,
    entitlements: EntitlementClient | None = None,
    image_service=None,
    tts=None,
) -> ServiceContainer:
    """Wire the services for one application instance.

    Any collaborator may be passed in to replace the configured one.
    """
    store = store or StoryboardStore(config["database_path"])
    blob_store = blob_store or build_blob_store(config)
    entitlements = entitlements or build_entitlements(config)
    closeables = []

    if image_service is None:
        image_service = ImageGenerationService(
            api_key=config.get("openai_api_key", ""),
            image_model=config.get("image_model", "gpt-image-1"),
            vision_model=config.get("vision_model", "gpt-4o"),
        )
        closeables.append(image_service)
    if tts is None:
        tts = TTSService(
            api_key=config.get("elevenlabs_api_key", ""),
            model_id=config.get("elevenlabs_model", "eleven_multilingual_v2"),
        )
        closeables.append(tts)
    if isinstance(entitlements, SchematicClient):
        closeables.append(entitlements)

    public_app_url = config.get("public_app_url", "").rstrip("/")
    runner = BackgroundJobRunner()

    voiceovers = VoiceoverService(
        store=store,
        tts=tts,
        blob_store=blob_store,
        entitlements=entitlements,
        runner=runner,
        webhook_url=config.get("voiceover_webhook_url", ""),
        callback_url=f"{public_app_url}{CALLBACK_PATH}",
    )

    return ServiceContainer(
        store=store,
        blob_store=blob_store,
        entitlements=entitlements,
        runner=runner,
        storyboard=StoryboardService(
            store=store,
            blob_store=blob_store,
            voiceover_service=voiceovers,
            entitlements=entitlements,
        ),
        scene_images=SceneImageService(
            store=store,
            image_service=image_service,
            blob_store=blob_store,
            entitlements=entitlements,
            image_size=config.get("image_size", "1536x1024"),
            image_quality=config.get("image_quality", "auto"),
            asset_base_url=public_app_url,
        ),
        voiceovers=voiceovers,
        projection=VoiceoverProjection(store, blob_store),
        closeables=closeables,
        callback_secret=config.get("voiceover_callback_secret", ""),
    )


def get_services(request: Request) -> ServiceContainer:
    """The container attached to the running app."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return services


def get_user_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    """Caller identity, set by the authenticating proxy in front of the API."""
    if not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing user")
    return x_user_id


def verify_callback_secret(
    request: Request,
    x_callback_secret: str | None = Header(default=None, alias="X-Callback-Secret"),
) -> None:
    """Reject worker callbacks that do not carry the configured shared secret."""
    expected = get_services(request).callback_secret
    if not expected:
        return
    if not x_callback_secret or not secrets.compare_digest(x_callback_secret, expected):
        logger.warning("Rejected voiceover callback with a missing or wrong secret")
        raise HTTPException(status_code=401, detail="Invalid callback secret")
