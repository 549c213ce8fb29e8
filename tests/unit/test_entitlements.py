"""Unit tests for entitlement checks and Schematic client."""

import json

import httpx
import pytest

from services.entitlements import (
    FeatureFlag,
    SchematicClient,
    StaticEntitlements,
    require_feature,
    track_usage,
)
from services.errors import EntitlementError


class BrokenTracker(StaticEntitlements):
    async def track(self, event: str, company_id: str, user_id: str) -> None:
        raise RuntimeError("metering down")


@pytest.mark.unit
class TestStaticEntitlements:
    @pytest.mark.asyncio
    async def test_none_allows_everything(self):
        client = StaticEntitlements()

        for feature in FeatureFlag:
            assert await client.check_flag("user-1", feature) is True

    @pytest.mark.asyncio
    async def test_allow_list(self):
        client = StaticEntitlements({"voiceover-generation"})

        assert await client.check_flag("user-1", FeatureFlag.VOICEOVER_GENERATION) is True
        assert await client.check_flag("user-1", FeatureFlag.SCENE_IMAGE_GENERATION) is False


@pytest.mark.unit
class TestRequireFeature:
    @pytest.mark.asyncio
    async def test_raises_with_feature_and_upgrade_message(self):
        with pytest.raises(EntitlementError, match="please upgrade") as exc_info:
            await require_feature(
                StaticEntitlements(set()), "user-1", FeatureFlag.SCENE_IMAGE_GENERATION
            )

        assert exc_info.value.feature == "scene-image-generation"

    @pytest.mark.asyncio
    async def test_passes_when_enabled(self):
        await require_feature(StaticEntitlements(), "user-1", FeatureFlag.STORYBOARD_WORKSPACE)

    @pytest.mark.asyncio
    async def test_track_usage_records_event(self):
        client = StaticEntitlements()

        await track_usage(client, "user-1", FeatureFlag.VOICEOVER_GENERATION)

        assert client.events == [("voiceover-generation", "user-1", "user-1")]

    @pytest.mark.asyncio
    async def test_track_usage_never_raises(self):
        await track_usage(BrokenTracker(), "user-1", FeatureFlag.SCENE_IMAGE_GENERATION)


@pytest.mark.unit
class TestSchematicClient:
    @pytest.mark.asyncio
    async def test_check_flag_and_track(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path.startswith("/flags/"):
                return httpx.Response(200, json={"data": {"value": True}})
            return httpx.Response(201, json={})

        client = SchematicClient(
            "sk-test", base_url="https://schematic.test", transport=httpx.MockTransport(handler)
        )
        try:
            assert await client.check_flag("user-1", FeatureFlag.VOICEOVER_GENERATION) is True
            await client.track("voiceover-generation", "user-1", "user-1")
        finally:
            await client.close()

        assert requests[0].url.path == "/flags/voiceover-generation/check"
        assert requests[0].headers["X-Schematic-Api-Key"] == "sk-test"
        assert json.loads(requests[0].content)["user"] == {"id": "user-1"}
        body = json.loads(requests[1].content)
        assert body["body"]["event"] == "voiceover-generation"

    @pytest.mark.asyncio
    async def test_check_flag_error_propagates(self):
        client = SchematicClient(
            "sk-test",
            base_url="https://schematic.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        try:
            with pytest.raises(httpx.HTTPStatusError):
                await client.check_flag("user-1", FeatureFlag.VOICEOVER_GENERATION)
        finally:
            await client.close()
