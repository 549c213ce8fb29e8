"""Voiceover job orchestration.

A request creates (or reuses) a voiceover record in ``processing`` state,
links it to its scene and schedules synthesis in the background. The
background job always ends by writing ``completed`` or ``failed`` to the
record; failures never escape as exceptions because the caller has already
returned. The record itself is the error channel.

Every (re)request bumps the record's generation. Completion writes are
conditional on it, so a job whose record was deleted or re-requested
discards its result instead of resurrecting stale state.
"""

import base64
import binascii
import logging
import math
from typing import Protocol

from models.voiceover import (
    DEFAULT_VOICE_PROVIDER,
    VoiceInfo,
    Voiceover,
    VoiceoverRequestResult,
    VoiceoverStatus,
)
from services.blob_store import BlobStore
from services.entitlements import EntitlementClient, FeatureFlag, require_feature, track_usage
from services.errors import VoiceoverNotFoundError
from services.job_runner import BackgroundJobRunner
from services.storyboard_store import StoryboardStore
from services.tts_service import TTSServiceError, sniff_audio_content_type

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 150


class SpeechSynthesizer(Protocol):
    """What the orchestrator needs from the speech provider."""

    async def synthesize(self, voice_id: str, text: str) -> bytes: ...

    async def dispatch_webhook(
        self,
        webhook_url: str,
        voiceover_id: str,
        generation: int,
        voice_id: str,
        text: str,
        callback_url: str,
    ) -> str | None: ...

    async def list_voices(self) -> list[VoiceInfo]: ...


def estimate_voiceover_duration(text: str) -> int:
    """Seconds of speech for text at 150 words per minute, at least 1.

    A placeholder until real audio analysis is wired in.
    """
    word_count = len(text.split())
    seconds = word_count / WORDS_PER_MINUTE * 60
    return max(1, math.floor(seconds + 0.5))


def audio_content_type(audio: bytes) -> str:
    """Content type for synthesized audio, sniffed from its header."""
    # ElevenLabs is asked for MP3, so unrecognised payloads are treated as MP3
    return sniff_audio_content_type(audio, default="audio/mpeg")


class VoiceoverService:
    """Schedules, completes, fails, recovers and deletes voiceover jobs."""

    def __init__(
        self,
        store: StoryboardStore,
        tts: SpeechSynthesizer,
        blob_store: BlobStore,
        entitlements: EntitlementClient,
        runner: BackgroundJobRunner,
        webhook_url: str = "",
        callback_url: str = "",
    ):
        """Initialize the voiceover service.

        Args:
            store: Scene and voiceover storage
            tts: Speech provider
            blob_store: Where finished audio is stored
            entitlements: Feature flag and usage backend
            runner: Background job runner
            webhook_url: When set, synthesis is delegated to this webhook
            callback_url: URL the webhook worker calls back on completion
        """
        self.store = store
        self.tts = tts
        self.blob_store = blob_store
        self.entitlements = entitlements
        self.runner = runner
        self.webhook_url = webhook_url
        self.callback_url = callback_url

    # =========================================================================
    # Request path
    # =========================================================================

    async def request_voiceover(
        self,
        user_id: str,
        script_id: str,
        video_id: str,
        text: str,
        voice_name: str,
        scene_id: str | None = None,
        voice_provider: str = DEFAULT_VOICE_PROVIDER,
    ) -> VoiceoverRequestResult:
        """Create or reuse a voiceover job and schedule synthesis.

        Calling this again for the same scene (e.g. to retry a failed job)
        returns the same voiceover id and resets it to processing.

        Raises:
            EntitlementError: If voiceover generation is not enabled
            ValueError: If text or voice_name is empty, or the scene is not part of script_id
            SceneNotFoundError: If scene_id does not exist
            ScriptNotFoundError: If script_id does not exist
            AuthorizationError: If the scene is another user's
        """
        await require_feature(self.entitlements, user_id, FeatureFlag.VOICEOVER_GENERATION)

        if not text or not text.strip():
            raise ValueError("Voiceover text is required")
        if not voice_name:
            raise ValueError("Voice name is required")

        voiceover = await self.store.upsert_voiceover(
            script_id=script_id,
            user_id=user_id,
            video_id=video_id,
            text=text,
            voice_name=voice_name,
            scene_id=scene_id,
            voice_provider=voice_provider,
        )
        self._schedule(voiceover)

        return VoiceoverRequestResult(voiceover_id=voiceover.id, status=voiceover.status)

    def _schedule(self, voiceover: Voiceover) -> None:
        job = self.dispatch_to_webhook if self.webhook_url else self.synthesize
        self.runner.submit(
            voiceover.id,
            job,
            voiceover.id,
            voiceover.generation,
            voiceover.text,
            voiceover.voice_name,
        )

    async def resume_processing(self) -> int:
        """Reschedule every job left in processing (e.g. after a restart).

        Returns:
            Number of jobs rescheduled
        """
        pending = await self.store.list_processing_voiceovers()
        for voiceover in pending:
            self._schedule(voiceover)
        if pending:
            logger.info(f"Resumed {len(pending)} voiceover jobs")
        return len(pending)

    # =========================================================================
    # Background path
    # =========================================================================

    async def synthesize(self, voiceover_id: str, generation: int, text: str, voice_name: str) -> None:
        """Background job: synthesize, store and complete one voiceover. Never raises."""
        try:
            current = await self.store.get_voiceover(voiceover_id)
            if not self._is_current(current, voiceover_id, generation):
                return

            audio = await self.tts.synthesize(voice_name, text)
            if not audio:
                raise TTSServiceError("TTS service returned empty audio")

            await self._complete(voiceover_id, generation, audio, text)
        except Exception as e:
            logger.error(f"Voiceover {voiceover_id} failed: {e}")
            await self._record_failure(voiceover_id, generation, f"Voiceover generation failed: {e}")

    async def dispatch_to_webhook(
        self, voiceover_id: str, generation: int, text: str, voice_name: str
    ) -> None:
        """Background job: hand synthesis to the external worker. Never raises."""
        try:
            current = await self.store.get_voiceover(voiceover_id)
            if not self._is_current(current, voiceover_id, generation):
                return

            job_id = await self.tts.dispatch_webhook(
                self.webhook_url,
                voiceover_id,
                generation,
                voice_name,
                text,
                self.callback_url,
            )
            logger.info(f"Voiceover {voiceover_id} dispatched to webhook (job {job_id})")
        except Exception as e:
            logger.error(f"Voiceover {voiceover_id} could not be dispatched: {e}")
            await self._record_failure(voiceover_id, generation, f"Failed to dispatch voiceover job: {e}")

    async def handle_callback(
        self,
        voiceover_id: str,
        success: bool,
        audio_base64: str | None = None,
        error: str | None = None,
        generation: int | None = None,
        duration: float | None = None,
    ) -> Voiceover:
        """Apply the result reported by an external synthesis worker.

        Performs the same completed/failed transition as the in-process job. A
        duration measured by the worker replaces the words-per-minute estimate.

        Returns:
            The voiceover after the transition

        Raises:
            VoiceoverNotFoundError: If the voiceover does not exist
        """
        current = await self.store.get_voiceover(voiceover_id)
        if current is None:
            raise VoiceoverNotFoundError(voiceover_id)

        if success:
            try:
                audio = base64.b64decode(audio_base64 or "", validate=True)
            except (binascii.Error, ValueError):
                audio = b""

            if audio:
                await self._complete(
                    voiceover_id, generation, audio, current.text, duration=duration
                )
            else:
                await self._record_failure(
                    voiceover_id, generation, "Voiceover callback contained no audio"
                )
        else:
            await self._record_failure(
                voiceover_id, generation, error or "Voiceover generation failed"
            )

        refreshed = await self.store.get_voiceover(voiceover_id)
        if refreshed is None:
            raise VoiceoverNotFoundError(voiceover_id)
        return refreshed

    def _is_current(self, current: Voiceover | None, voiceover_id: str, generation: int) -> bool:
        if current is None:
            logger.info(f"Voiceover {voiceover_id} was deleted; skipping synthesis")
            return False
        if current.generation != generation or current.status != VoiceoverStatus.PROCESSING:
            logger.info(
                f"Voiceover {voiceover_id} generation {generation} superseded "
                f"by generation {current.generation}; skipping"
            )
            return False
        return True

    async def _complete(
        self,
        voiceover_id: str,
        generation: int | None,
        audio: bytes,
        text: str,
        duration: float | None = None,
    ) -> bool:
        storage_id = await self.blob_store.put(audio, audio_content_type(audio))
        if duration and duration > 0:
            seconds = max(1, round(duration))
        else:
            seconds = estimate_voiceover_duration(text)

        updated = await self.store.complete_voiceover(voiceover_id, generation, storage_id, seconds)
        if not updated:
            await self.blob_store.delete(storage_id)
            return False

        logger.info(f"Voiceover {voiceover_id} completed ({seconds}s, blob {storage_id})")
        voiceover = await self.store.get_voiceover(voiceover_id)
        if voiceover is not None:
            await track_usage(self.entitlements, voiceover.user_id, FeatureFlag.VOICEOVER_GENERATION)
        return True

    async def _record_failure(self, voiceover_id: str, generation: int | None, message: str) -> None:
        try:
            await self.store.fail_voiceover(voiceover_id, generation, message)
        except Exception:
            logger.exception(f"Could not record failure for voiceover {voiceover_id}")

    # =========================================================================
    # Deletion and catalogue
    # =========================================================================

    async def delete_voiceover(self, user_id: str, voiceover_id: str) -> None:
        """Delete a voiceover: its audio blob, its scene back-reference and the record.

        A job still in flight for it is not cancelled; its result is discarded
        when it tries to complete.

        Raises:
            VoiceoverNotFoundError: If the voiceover does not exist
            AuthorizationError: If it is another user's
        """
        voiceover = await self.store.get_user_voiceover(voiceover_id, user_id)

        if voiceover.storage_id:
            try:
                await self.blob_store.delete(voiceover.storage_id)
            except Exception as e:
                logger.warning(f"Failed to delete audio {voiceover.storage_id}: {e}")

        if voiceover.scene_id:
            await self.store.clear_scene_voiceover(voiceover.scene_id, voiceover_id)

        await self.store.delete_voiceover(voiceover_id)

    async def list_voices(self) -> list[VoiceInfo]:
        """Voices offered by the speech provider."""
        return await self.tts.list_voices()
