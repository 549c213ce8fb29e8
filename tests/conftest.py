"""Shared pytest fixtures for scenecraft tests."""

import sys
import uuid
from pathlib import Path

import pytest
import pytest_asyncio

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from models.voiceover import VoiceInfo  # noqa: E402
from services.entitlements import StaticEntitlements  # noqa: E402
from services.image_generation_service import ImageGenerationError  # noqa: E402
from services.job_runner import BackgroundJobRunner  # noqa: E402
from services.scene_image_service import SceneImageService  # noqa: E402
from services.storyboard_service import StoryboardService  # noqa: E402
from services.storyboard_store import StoryboardStore  # noqa: E402
from services.tts_service import TTSServiceError  # noqa: E402
from services.voiceover_projection import VoiceoverProjection  # noqa: E402
from services.voiceover_service import VoiceoverService  # noqa: E402

FAKE_MP3 = b"ID3" + b"\x00" * 64
FAKE_WEBP = b"RIFF\x00\x00\x00\x00WEBPVP8 "


class FakeBlobStore:
    """In-memory blob store."""

    def __init__(self, base_url: str = "https://blobs.test"):
        self.base_url = base_url
        self.blobs: dict[str, tuple[bytes, str]] = {}
        self.deleted: list[str] = []

    async def put(self, data: bytes, content_type: str) -> str:
        blob_id = f"blob-{uuid.uuid4().hex[:12]}"
        self.blobs[blob_id] = (data, content_type)
        return blob_id

    async def get_url(self, blob_id: str) -> str | None:
        if blob_id not in self.blobs:
            return None
        return f"{self.base_url}/{blob_id}"

    async def delete(self, blob_id: str) -> None:
        self.blobs.pop(blob_id, None)
        self.deleted.append(blob_id)


class FakeTTS:
    """Speech provider double. Fails when ``fail_with`` is set."""

    def __init__(self, audio: bytes = FAKE_MP3):
        self.audio = audio
        self.fail_with: str | None = None
        self.calls: list[tuple[str, str]] = []
        self.webhook_calls: list[dict] = []

    async def synthesize(self, voice_id: str, text: str) -> bytes:
        self.calls.append((voice_id, text))
        if self.fail_with:
            raise TTSServiceError(self.fail_with)
        return self.audio

    async def dispatch_webhook(
        self,
        webhook_url: str,
        voiceover_id: str,
        generation: int,
        voice_id: str,
        text: str,
        callback_url: str,
    ) -> str | None:
        self.webhook_calls.append(
            {
                "webhook_url": webhook_url,
                "voiceover_id": voiceover_id,
                "generation": generation,
                "voice_id": voice_id,
                "text": text,
                "callback_url": callback_url,
            }
        )
        return "job-1"

    async def list_voices(self) -> list[VoiceInfo]:
        return [VoiceInfo(voice_id="voice-1", name="Rachel", labels={"gender": "female"})]


class FakeImageService:
    """Image provider double that records prompts."""

    content_type = "image/webp"

    def __init__(self, image: bytes = FAKE_WEBP):
        self.image = image
        self.fail_with: str | None = None
        self.describe_fails = False
        self.prompts: list[str] = []
        self.fetched: list[str] = []

    async def generate(self, prompt: str, size: str, quality: str) -> bytes:
        self.prompts.append(prompt)
        if self.fail_with:
            raise ImageGenerationError(self.fail_with)
        return self.image

    async def fetch_data_uri(self, url: str) -> str:
        self.fetched.append(url)
        return "data:image/webp;base64,AAAA"

    async def describe(self, image_data_uri: str) -> str:
        if self.describe_fails:
            raise ImageGenerationError("vision unavailable")
        return "A woman in a red coat, warm cinematic lighting"


@pytest_asyncio.fixture
async def store():
    """Connected in-memory storyboard store."""
    store = StoryboardStore(":memory:")
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def tts() -> FakeTTS:
    return FakeTTS()


@pytest.fixture
def image_service() -> FakeImageService:
    return FakeImageService()


@pytest.fixture
def entitlements() -> StaticEntitlements:
    """Entitlements with every feature enabled."""
    return StaticEntitlements()


@pytest_asyncio.fixture
async def runner():
    runner = BackgroundJobRunner()
    yield runner
    await runner.shutdown()


@pytest.fixture
def voiceover_service(store, tts, blob_store, entitlements, runner) -> VoiceoverService:
    return VoiceoverService(
        store=store,
        tts=tts,
        blob_store=blob_store,
        entitlements=entitlements,
        runner=runner,
    )


@pytest.fixture
def scene_image_service(store, image_service, blob_store, entitlements) -> SceneImageService:
    return SceneImageService(
        store=store,
        image_service=image_service,
        blob_store=blob_store,
        entitlements=entitlements,
    )


@pytest.fixture
def storyboard_service(store, blob_store, voiceover_service, entitlements) -> StoryboardService:
    return StoryboardService(
        store=store,
        blob_store=blob_store,
        voiceover_service=voiceover_service,
        entitlements=entitlements,
    )


@pytest.fixture
def projection(store, blob_store) -> VoiceoverProjection:
    return VoiceoverProjection(store, blob_store)


@pytest.fixture
def sample_script_text() -> str:
    """Four-paragraph script used across storyboard tests."""
    return (
        "Welcome, everyone! Today we explore the city.\n\n"
        "The camera shows a busy street at dawn.\n\n"
        'Maria says: "This is where it all began."\n\n'
        "Thanks for watching, see you next time."
    )


@pytest_asyncio.fixture
async def script(store, sample_script_text):
    """A stored script owned by user-1."""
    return await store.add_script("user-1", "video-1", sample_script_text, title="City Tour")


@pytest_asyncio.fixture
async def parsed_scenes(storyboard_service, script):
    """Scenes parsed from the sample script."""
    return await storyboard_service.parse_script_into_scenes("user-1", script.id)
