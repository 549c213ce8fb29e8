"""Storyboard workspace routes for the SceneCraft API."""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import ServiceContainer, get_services, get_user_id
from api.schemas import (
    MessageResponse,
    ParseScriptRequest,
    SceneCreateRequest,
    SceneImageRequest,
    SceneUpdateRequest,
    ScriptCreateRequest,
)
from models.storyboard import SceneDraft

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/storyboard", tags=["Storyboard"])


@router.post("/scripts", summary="Register a script", status_code=201)
async def create_script(
    request: ScriptCreateRequest,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """Store a generated script so it can be parsed into scenes."""
    script = await services.store.add_script(
        user_id=user_id,
        video_id=request.video_id,
        script=request.script,
        title=request.title,
    )
    return script.to_dict()


@router.post(
    "/scripts/{script_id}/parse",
    summary="Parse script into scenes",
    description="Segment the script into ordered, typed scenes and persist them.",
    responses={402: {"description": "Upgrade required"}, 404: {"description": "Script not found"}},
)
async def parse_script(
    script_id: str,
    request: ParseScriptRequest | None = None,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """Parse a script into scenes."""
    replace = request.replace if request else False
    logger.info(f"Parsing script {script_id} (replace={replace})")
    scenes = await services.storyboard.parse_script_into_scenes(user_id, script_id, replace=replace)
    return {
        "success": True,
        "scene_count": len(scenes),
        "scenes": [scene.to_dict() for scene in scenes],
    }


@router.get("/scripts/{script_id}/scenes", summary="List scenes")
async def list_scenes(
    script_id: str,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> list[dict]:
    """Scenes of a script in scene order."""
    scenes = await services.storyboard.list_scenes(user_id, script_id)
    return [scene.to_dict() for scene in scenes]


@router.post("/scripts/{script_id}/scenes", summary="Create a scene", status_code=201)
async def create_scene(
    script_id: str,
    request: SceneCreateRequest,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """Insert one scene."""
    draft = SceneDraft(
        scene_index=request.scene_index,
        scene_name=request.scene_name,
        scene_content=request.scene_content,
        content_type=request.content_type,
        emotion=request.emotion,
        visual_elements=request.visual_elements,
        duration=request.duration,
        notes=request.notes,
    )
    scene = await services.storyboard.create_scene(user_id, script_id, request.video_id, draft)
    return scene.to_dict()


@router.get("/scenes/{scene_id}", summary="Get a scene", responses={404: {"description": "Scene not found"}})
async def get_scene(
    scene_id: str,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """Get a single scene."""
    scene = await services.store.get_scene(scene_id, user_id)
    return scene.to_dict()


@router.patch("/scenes/{scene_id}", summary="Update a scene", responses={404: {"description": "Scene not found"}})
async def update_scene(
    scene_id: str,
    request: SceneUpdateRequest,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """Partially update a scene."""
    fields = request.model_dump(exclude_unset=True, exclude_none=True)
    scene = await services.storyboard.update_scene(user_id, scene_id, **fields)
    return scene.to_dict()


@router.delete("/scenes/{scene_id}", summary="Delete a scene", responses={404: {"description": "Scene not found"}})
async def delete_scene(
    scene_id: str,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> MessageResponse:
    """Delete a scene with its voiceover and image."""
    await services.storyboard.delete_scene(user_id, scene_id)
    return MessageResponse(message=f"Scene {scene_id} deleted")


@router.post(
    "/scenes/{scene_id}/image",
    summary="Generate scene image",
    description="Generate an image for the scene, optionally anchored to a prior scene's image.",
    responses={
        402: {"description": "Upgrade required"},
        404: {"description": "Scene not found"},
        502: {"description": "Image service failed"},
    },
)
async def generate_scene_image(
    scene_id: str,
    request: SceneImageRequest,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """Generate and link a scene image."""
    result = await services.scene_images.generate_scene_image(
        user_id=user_id,
        scene_id=scene_id,
        video_id=request.video_id,
        scene_content=request.scene_content,
        emotion=request.emotion,
        visual_elements=request.visual_elements,
        reference_scene_id=request.reference_scene_id,
        reference_selection=request.reference_selection,
    )
    data = result.to_dict()
    data["url"] = await services.blob_store.get_url(result.storage_id)
    return data


@router.get("/scenes/{scene_id}/image", summary="Get scene image URL")
async def get_scene_image(
    scene_id: str,
    user_id: str = Depends(get_user_id),
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """Resolve the current image URL of a scene (None when it has no image)."""
    scene = await services.store.get_scene(scene_id, user_id)
    url = await services.blob_store.get_url(scene.image_id) if scene.image_id else None
    return {"scene_id": scene_id, "image_id": scene.image_id, "url": url}
