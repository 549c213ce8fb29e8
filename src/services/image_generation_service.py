"""Image Generation Service - OpenAI image generation and vision description."""

import base64
import logging

import httpx
from openai import AsyncOpenAI, OpenAIError

from services.errors import UpstreamServiceError
from services.prompts.scene_images import REFERENCE_IMAGE_ANALYZER

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MODEL = "gpt-image-1"
DEFAULT_VISION_MODEL = "gpt-4o"
DEFAULT_IMAGE_SIZE = "1536x1024"  # "1024x1024", "1024x1536", "1536x1024" or "auto"
DEFAULT_IMAGE_QUALITY = "auto"
OUTPUT_FORMAT = "webp"
OUTPUT_COMPRESSION = 75
VISION_MAX_TOKENS = 300

OUTPUT_CONTENT_TYPES = {
    "png": "image/png",
    "webp": "image/webp",
    "jpeg": "image/jpeg",
}


class ImageGenerationError(UpstreamServiceError):
    """Error from image generation service."""

    pass


class ImageGenerationService:
    """Async client for scene image generation and reference image description."""

    def __init__(
        self,
        api_key: str = "",
        image_model: str = DEFAULT_IMAGE_MODEL,
        vision_model: str = DEFAULT_VISION_MODEL,
        client: AsyncOpenAI | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize image generation service.

        Args:
            api_key: OpenAI API key
            image_model: Model used for image generation
            vision_model: Model used to describe reference images
            client: Preconfigured OpenAI client (overrides api_key)
            http_client: HTTP client used to download reference images
        """
        self.api_key = api_key
        self.image_model = image_model
        self.vision_model = vision_model
        self.client = client or AsyncOpenAI(api_key=api_key or None)
        self.http_client = http_client or httpx.AsyncClient(timeout=60.0, follow_redirects=True)

    @property
    def content_type(self) -> str:
        """Content type of the images this service produces."""
        return OUTPUT_CONTENT_TYPES[OUTPUT_FORMAT]

    async def generate(
        self,
        prompt: str,
        size: str = DEFAULT_IMAGE_SIZE,
        quality: str = DEFAULT_IMAGE_QUALITY,
    ) -> bytes:
        """Generate one image from a prompt.

        Args:
            prompt: Full image prompt
            size: Output size
            quality: Output quality

        Returns:
            Raw image bytes

        Raises:
            ImageGenerationError: If the call fails or returns no image data
        """
        logger.info(f"Generating image with {self.image_model}: {prompt[:80]}...")
        try:
            response = await self.client.images.generate(
                model=self.image_model,
                prompt=prompt,
                size=size,
                quality=quality,
                moderation="auto",
                output_format=OUTPUT_FORMAT,
                output_compression=OUTPUT_COMPRESSION,
            )
        except OpenAIError as e:
            raise ImageGenerationError(f"Image generation request failed: {e}") from e

        if not response.data:
            raise ImageGenerationError("No image data received from image service")

        b64_json = response.data[0].b64_json
        if not b64_json:
            raise ImageGenerationError("Expected base64 image data but received a different format")

        image_bytes = base64.b64decode(b64_json)
        if not image_bytes:
            raise ImageGenerationError("Image service returned an empty image")
        return image_bytes

    async def fetch_data_uri(self, url: str) -> str:
        """Download an image and encode it as a data URI.

        Raises:
            ImageGenerationError: If the download fails
        """
        try:
            response = await self.http_client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ImageGenerationError(f"Failed to fetch reference image: {e}") from e

        content_type = response.headers.get("content-type", "image/png").split(";")[0].strip()
        if not content_type.startswith("image/"):
            content_type = "image/png"
        encoded = base64.b64encode(response.content).decode("ascii")
        return f"data:{content_type};base64,{encoded}"

    async def describe(self, image_data_uri: str) -> str:
        """Describe an image's characters, style, lighting, palette and mood.

        Returns:
            The description, possibly empty

        Raises:
            ImageGenerationError: If the vision call fails
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.vision_model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": REFERENCE_IMAGE_ANALYZER},
                            {"type": "image_url", "image_url": {"url": image_data_uri}},
                        ],
                    }
                ],
                max_tokens=VISION_MAX_TOKENS,
            )
        except OpenAIError as e:
            raise ImageGenerationError(f"Vision request failed: {e}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        """Close HTTP clients."""
        await self.http_client.aclose()
        await self.client.close()
