"""Feature entitlement checks and usage metering.

Every paid generation calls ``require_feature`` first and ``track_usage``
after success. Tracking is best effort: a metering failure is logged and never
fails the generation that triggered it.
"""

import logging
from enum import Enum
from typing import Protocol

import httpx

from services.errors import EntitlementError

logger = logging.getLogger(__name__)

SCHEMATIC_API_BASE = "https://api.schematichq.com"


class FeatureFlag(str, Enum):
    """Entitlement keys for the storyboard workspace."""

    STORYBOARD_WORKSPACE = "storyboard-workspace"
    SCENE_IMAGE_GENERATION = "scene-image-generation"
    VOICEOVER_GENERATION = "voiceover-generation"


# Usage event emitted after a successful use of each feature
FEATURE_EVENTS: dict[FeatureFlag, str] = {
    FeatureFlag.STORYBOARD_WORKSPACE: "workspace-enabled",
    FeatureFlag.SCENE_IMAGE_GENERATION: "scene-image-generation",
    FeatureFlag.VOICEOVER_GENERATION: "voiceover-generation",
}

UPGRADE_MESSAGES: dict[FeatureFlag, str] = {
    FeatureFlag.STORYBOARD_WORKSPACE: "Storyboard workspace is not enabled, please upgrade",
    FeatureFlag.SCENE_IMAGE_GENERATION: "Scene image generation is not enabled, please upgrade",
    FeatureFlag.VOICEOVER_GENERATION: "Voiceover generation is not enabled, please upgrade",
}


class EntitlementClient(Protocol):
    """Entitlement and metering backend."""

    async def check_flag(self, user_id: str, feature: FeatureFlag) -> bool: ...

    async def track(self, event: str, company_id: str, user_id: str) -> None: ...


class StaticEntitlements:
    """Entitlements from a fixed allow-list, for local use and tests."""

    def __init__(self, enabled: set[str] | None = None):
        """Initialize with the enabled feature keys.

        Args:
            enabled: Feature keys to allow. None allows every feature.
        """
        self.enabled = enabled
        self.events: list[tuple[str, str, str]] = []

    async def check_flag(self, user_id: str, feature: FeatureFlag) -> bool:
        if self.enabled is None:
            return True
        return FeatureFlag(feature).value in self.enabled

    async def track(self, event: str, company_id: str, user_id: str) -> None:
        self.events.append((event, company_id, user_id))
        logger.debug(f"Tracked {event} for user {user_id}")


class SchematicClient:
    """Schematic entitlement checks and event tracking over HTTP."""

    def __init__(
        self,
        api_key: str,
        base_url: str = SCHEMATIC_API_BASE,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            api_key: Schematic secret API key
            base_url: API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"X-Schematic-Api-Key": api_key},
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    @staticmethod
    def _context(company_id: str, user_id: str) -> dict:
        return {"company": {"id": company_id}, "user": {"id": user_id}}

    async def check_flag(self, user_id: str, feature: FeatureFlag) -> bool:
        """Evaluate a flag for a user (users are their own company).

        Raises:
            httpx.HTTPError: If Schematic cannot be reached
        """
        key = FeatureFlag(feature).value
        response = await self.client.post(
            f"/flags/{key}/check", json=self._context(user_id, user_id)
        )
        response.raise_for_status()
        value = bool(response.json().get("data", {}).get("value", False))
        logger.debug(f"Flag {key} for user {user_id}: {value}")
        return value

    async def track(self, event: str, company_id: str, user_id: str) -> None:
        response = await self.client.post(
            "/events",
            json={
                "event_type": "track",
                "body": {"event": event, **self._context(company_id, user_id)},
            },
        )
        response.raise_for_status()


async def require_feature(client: EntitlementClient, user_id: str, feature: FeatureFlag) -> None:
    """Fail with EntitlementError unless user_id may use feature.

    Raises:
        EntitlementError: If the flag is off for this user
    """
    if not await client.check_flag(user_id, feature):
        logger.warning(f"{feature.value} not enabled for user {user_id}")
        raise EntitlementError(feature.value, UPGRADE_MESSAGES.get(feature))


async def track_usage(client: EntitlementClient, user_id: str, feature: FeatureFlag) -> None:
    """Emit the usage event for feature. Never raises."""
    event = FEATURE_EVENTS[feature]
    try:
        await client.track(event, user_id, user_id)
    except Exception as e:
        logger.warning(f"Failed to track {event} for user {user_id}: {e}")
