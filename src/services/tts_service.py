"""TTS Service - HTTP client for ElevenLabs speech synthesis.

Supports two dispatch modes:
- direct: synthesize() calls ElevenLabs and returns the audio bytes
- webhook: dispatch_webhook() hands the job to an external worker (e.g. n8n)
  that calls back with base64 audio when done
"""

import logging
import time

import httpx

from models.voiceover import VoiceInfo
from services.errors import UpstreamServiceError

logger = logging.getLogger(__name__)

ELEVENLABS_API_BASE = "https://api.elevenlabs.io/v1"
DEFAULT_TTS_MODEL = "eleven_multilingual_v2"
DEFAULT_OUTPUT_FORMAT = "mp3_44100_128"
VOICES_CACHE_TTL = 60 * 60  # 1 hour

# (offset, magic bytes, content type)
AUDIO_SIGNATURES = (
    (0, b"ID3", "audio/mpeg"),
    (0, b"OggS", "audio/ogg"),
    (0, b"fLaC", "audio/flac"),
    (8, b"WAVE", "audio/wav"),
)


def sniff_audio_content_type(audio: bytes, default: str = "application/octet-stream") -> str:
    """Content type of an audio payload from its leading bytes."""
    for offset, magic, content_type in AUDIO_SIGNATURES:
        if audio[offset : offset + len(magic)] == magic:
            return content_type
    # Bare MPEG frame sync, no ID3 tag
    if len(audio) >= 2 and audio[0] == 0xFF and (audio[1] & 0xE0) == 0xE0:
        return "audio/mpeg"
    return default


class TTSServiceError(UpstreamServiceError):
    """Error from TTS service."""

    pass


class TTSService:
    """HTTP client for ElevenLabs text-to-speech."""

    def __init__(
        self,
        api_key: str = "",
        model_id: str = DEFAULT_TTS_MODEL,
        base_url: str = ELEVENLABS_API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize TTS service.

        Args:
            api_key: ElevenLabs API key
            model_id: Speech model used for synthesis
            base_url: API base URL
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key
        self.model_id = model_id
        self.base_url = base_url.rstrip("/")
        # Long timeout for TTS generation (can take minutes for long text)
        self.client = httpx.AsyncClient(timeout=600.0, transport=transport)
        self._voices_cache: list[VoiceInfo] | None = None
        self._voices_cached_at = 0.0

    def is_configured(self) -> bool:
        """Check if an API key is configured."""
        return bool(self.api_key)

    def _headers(self) -> dict[str, str]:
        return {"xi-api-key": self.api_key}

    async def synthesize(self, voice_id: str, text: str) -> bytes:
        """Convert text to speech.

        Args:
            voice_id: ElevenLabs voice ID
            text: Text to speak

        Returns:
            Audio bytes (MP3)

        Raises:
            TTSServiceError: On a non-success response or an empty payload
        """
        if not self.is_configured():
            raise TTSServiceError("ELEVENLABS_API_KEY not configured")

        logger.info(f"Synthesizing {len(text)} chars with voice {voice_id}")
        try:
            response = await self.client.post(
                f"{self.base_url}/text-to-speech/{voice_id}",
                params={"output_format": DEFAULT_OUTPUT_FORMAT},
                headers={**self._headers(), "Accept": "audio/mpeg"},
                json={"text": text, "model_id": self.model_id},
            )
        except httpx.HTTPError as e:
            raise TTSServiceError(f"Failed to reach TTS service: {e}") from e

        if response.status_code != 200:
            raise TTSServiceError(
                f"TTS service returned {response.status_code}: {response.text[:300]}"
            )
        if not response.content:
            raise TTSServiceError("TTS service returned empty audio")

        return response.content

    async def dispatch_webhook(
        self,
        webhook_url: str,
        voiceover_id: str,
        generation: int,
        voice_id: str,
        text: str,
        callback_url: str,
    ) -> str | None:
        """Send a synthesis job to an external worker that calls back when done.

        Returns:
            The worker's job id, if it reports one

        Raises:
            TTSServiceError: If the worker does not accept the job
        """
        try:
            response = await self.client.post(
                webhook_url,
                json={
                    "voiceoverId": voiceover_id,
                    "generation": generation,
                    "voiceId": voice_id,
                    "text": text,
                    "modelId": self.model_id,
                    "callbackUrl": callback_url,
                },
            )
        except httpx.HTTPError as e:
            raise TTSServiceError(f"Failed to send voiceover job to webhook: {e}") from e

        if response.status_code >= 400:
            raise TTSServiceError(f"Webhook responded with status: {response.status_code}")

        try:
            return response.json().get("jobId")
        except ValueError:
            return None

    async def list_voices(self) -> list[VoiceInfo]:
        """Available voices, cached for an hour.

        Returns an empty list when the provider cannot be reached.
        """
        now = time.monotonic()
        if self._voices_cache is not None and now - self._voices_cached_at < VOICES_CACHE_TTL:
            return self._voices_cache

        if not self.is_configured():
            return []

        try:
            response = await self.client.get(f"{self.base_url}/voices", headers=self._headers())
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error fetching voices: {e}")
            return []

        voices = [
            VoiceInfo(
                voice_id=voice.get("voice_id", ""),
                name=voice.get("name", ""),
                category=voice.get("category") or "custom",
                description=voice.get("description"),
                labels=voice.get("labels") or {},
                preview_url=voice.get("preview_url"),
            )
            for voice in payload.get("voices", [])
        ]
        self._voices_cache = voices
        self._voices_cached_at = now
        return voices

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
