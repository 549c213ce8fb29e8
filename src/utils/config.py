"""Configuration loading and validation for SceneCraft."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / ".env")

BLOB_BACKENDS = ("local", "r2")


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def load_config() -> dict:
    """Load configuration from environment variables."""

    # Helper function to resolve paths relative to project root
    def resolve_path(path: str | None, default_relative: str) -> str:
        if not path:
            return str(PROJECT_ROOT / default_relative)
        if path == ":memory:" or Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    enabled_features = os.getenv("ENABLED_FEATURES")

    config = {
        # Image and vision generation
        "openai_api_key": os.getenv("OPENAI_API_KEY", ""),
        "image_model": os.getenv("IMAGE_MODEL", "gpt-image-1"),
        "vision_model": os.getenv("VISION_MODEL", "gpt-4o"),
        "image_size": os.getenv("IMAGE_SIZE", "1536x1024"),
        "image_quality": os.getenv("IMAGE_QUALITY", "auto"),
        # Speech synthesis
        "elevenlabs_api_key": os.getenv("ELEVENLABS_API_KEY", ""),
        "elevenlabs_model": os.getenv("ELEVENLABS_MODEL", "eleven_multilingual_v2"),
        # Optional external synthesis worker (n8n or similar)
        "voiceover_webhook_url": os.getenv("VOICEOVER_WEBHOOK_URL", ""),
        "public_app_url": os.getenv("PUBLIC_APP_URL", "http://localhost:8000"),
        # Shared secret the worker sends back in X-Callback-Secret (unchecked when empty)
        "voiceover_callback_secret": os.getenv("VOICEOVER_CALLBACK_SECRET", ""),
        # Entitlements: Schematic when a key is set, otherwise a static allow-list
        "schematic_api_key": os.getenv("SCHEMATIC_API_KEY", ""),
        "enabled_features": (
            {f.strip() for f in enabled_features.split(",") if f.strip()}
            if enabled_features is not None
            else None
        ),
        # Persistence
        "database_path": resolve_path(os.getenv("DATABASE_PATH"), ".scenecraft/storyboard.db"),
        "blob_backend": os.getenv("BLOB_BACKEND", "local").lower(),
        "local_blob_dir": resolve_path(os.getenv("LOCAL_BLOB_DIR"), ".scenecraft/blobs"),
        "local_blob_base_url": os.getenv("LOCAL_BLOB_BASE_URL", "/api/blobs"),
        "r2_account_id": os.getenv("R2_ACCOUNT_ID", ""),
        "r2_access_key_id": os.getenv("R2_ACCESS_KEY_ID", ""),
        "r2_secret_access_key": os.getenv("R2_SECRET_ACCESS_KEY", ""),
        "r2_bucket_name": os.getenv("R2_BUCKET_NAME", "scenecraft-media"),
        "r2_url_expires_in": int(os.getenv("R2_URL_EXPIRES_IN", "3600")),
        # Logging
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": _flag("LOG_JSON"),
    }

    return config


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if not config.get("openai_api_key"):
        errors.append("OPENAI_API_KEY is required for scene image generation")

    if not config.get("elevenlabs_api_key") and not config.get("voiceover_webhook_url"):
        errors.append(
            "ELEVENLABS_API_KEY or VOICEOVER_WEBHOOK_URL is required for voiceover generation"
        )

    if config.get("voiceover_webhook_url") and not config.get("voiceover_callback_secret"):
        errors.append("VOICEOVER_CALLBACK_SECRET should be set when VOICEOVER_WEBHOOK_URL is used")

    backend = config.get("blob_backend")
    if backend not in BLOB_BACKENDS:
        errors.append(f"BLOB_BACKEND must be one of {', '.join(BLOB_BACKENDS)}, got {backend!r}")

    if backend == "r2":
        missing = [
            name
            for name, key in (
                ("R2_ACCOUNT_ID", "r2_account_id"),
                ("R2_ACCESS_KEY_ID", "r2_access_key_id"),
                ("R2_SECRET_ACCESS_KEY", "r2_secret_access_key"),
            )
            if not config.get(key)
        ]
        if missing:
            errors.append(f"R2 blob storage requires {', '.join(missing)}")

    if backend == "local":
        try:
            Path(config["local_blob_dir"]).mkdir(parents=True, exist_ok=True)
        except Exception as e:
            errors.append(f"Cannot create local blob folder: {e}")

    return errors
