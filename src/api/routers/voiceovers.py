"""Voiceover job routes for the SceneCraft API."""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import (
    CALLBACK_PATH,
    ServiceContainer,
    get_services,
    get_user_id,
    verify_callback_secret,
)
from api.schemas import MessageResponse, VoiceoverCallbackRequest, VoiceoverRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Voiceovers"])


@router.post(
    "/api/voiceovers",
    summary="Request a voiceover",
    description="Create or reuse the scene's voiceover job and start synthesis in the background.",
    status_code=202,
    responses={402: {"description": "Upgrade required"}, 404: {"description": "Scene not found"}},
)
async def request_voiceover(
    request: VoiceoverRequest,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """Request a voiceover. Poll the scene voiceover endpoint for its status."""
    result = await services.voiceovers.request_voiceover(
        user_id=user_id,
        script_id=request.script_id,
        video_id=request.video_id,
        text=request.text,
        voice_name=request.voice_name,
        scene_id=request.scene_id,
        voice_provider=request.voice_provider,
    )
    return {"success": True, **result.to_dict()}


@router.get("/api/voiceovers/voices", summary="List available voices")
async def list_voices(services: ServiceContainer = Depends(get_services)) -> list[dict]:
    """Voices offered by the speech provider."""
    voices = await services.voiceovers.list_voices()
    return [voice.to_dict() for voice in voices]


@router.get("/api/voiceovers/scripts/{script_id}", summary="List script voiceovers")
async def get_voiceovers(
    script_id: str,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> list[dict]:
    """All voiceovers of a script with playback URLs."""
    return await services.projection.get_voiceovers(script_id, user_id)


@router.get("/api/voiceovers/scenes/{scene_id}", summary="Get scene voiceover")
async def get_scene_voiceover(
    scene_id: str,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> dict | None:
    """Current voiceover of a scene, or null."""
    return await services.projection.get_scene_voiceover(scene_id, user_id)


@router.delete(
    "/api/voiceovers/{voiceover_id}",
    summary="Delete a voiceover",
    responses={404: {"description": "Voiceover not found"}},
)
async def delete_voiceover(
    voiceover_id: str,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> MessageResponse:
    """Delete a voiceover, its audio and its scene link."""
    await services.voiceovers.delete_voiceover(user_id, voiceover_id)
    return MessageResponse(message=f"Voiceover {voiceover_id} deleted")


@router.post(
    CALLBACK_PATH,
    summary="Voiceover worker callback",
    description="Called by the external synthesis worker with base64 audio or an error.",
    dependencies=[Depends(verify_callback_secret)],
    responses={401: {"description": "Invalid callback secret"}, 404: {"description": "Voiceover not found"}},
)
async def voiceover_callback(
    request: VoiceoverCallbackRequest,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """Apply an external worker's result to a voiceover job."""
    logger.info(f"Callback for voiceover {request.voiceover_id}: success={request.success}")
    voiceover = await services.voiceovers.handle_callback(
        voiceover_id=request.voiceover_id,
        success=request.success,
        audio_base64=request.audio_base64,
        error=request.error,
        generation=request.generation,
        duration=request.duration,
    )
    return {"success": True, "status": voiceover.status.value}
