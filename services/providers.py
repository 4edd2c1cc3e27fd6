"""
External collaborators of the extraction service.

The vision-completion provider answers a prompt about an image with free
text. The cloud analyzer returns pixel-space boxes for objects, captions,
people and smart crops. Both are optional: the service degrades when they
are missing or failing.
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from openai import AsyncOpenAI

from core.image.converters import to_data_url
from schemas import CloudAnalysis, CloudRegion, TextRegion

logger = logging.getLogger(__name__)

__all__ = [
    "VisionCompletionProvider",
    "CloudVisionAnalyzer",
    "OpenAIVisionProvider",
    "CloudAnalysis",
    "CloudRegion",
    "TextRegion",
]


@runtime_checkable
class VisionCompletionProvider(Protocol):
    """Answers a text prompt about an image."""

    async def complete(
        self,
        image_bytes: bytes,
        mime_type: str,
        prompt: str,
        system_prompt: Optional[str] = None,
    ) -> str: ...


@runtime_checkable
class CloudVisionAnalyzer(Protocol):
    """Remote image analysis returning pixel-space regions."""

    async def analyze(self, image_bytes: bytes) -> CloudAnalysis: ...

    async def detect_people(self, image_bytes: bytes) -> CloudAnalysis: ...


class OpenAIVisionProvider:
    """
    Vision completion through the OpenAI chat completions API.

    The image travels inline as a base64 data URL.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: Optional[str] = None,
        timeout_seconds: float = 60.0,
        max_tokens: int = 4096,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize provider.

        Args:
            api_key: API key
            model: Vision-capable chat model
            base_url: Optional API base URL (Azure or compatible gateways)
            timeout_seconds: Request timeout
            max_tokens: Completion token limit
            client: Preconfigured client, mainly for tests
        """
        self.model = model
        self.max_tokens = max_tokens
        self.client = client or AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout_seconds
        )

    async def complete(
        self,
        image_bytes: bytes,
        mime_type: str,
        prompt: str,
        system_prompt: Optional[str] = None,
    ) -> str:
        """
        Send one image and prompt, return the reply text.

        Raises:
            openai.OpenAIError: On transport, auth or quota failures
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {
                        "type": "image_url",
                        "image_url": {"url": to_data_url(image_bytes, mime_type), "detail": "high"},
                    },
                ],
            }
        )

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=self.max_tokens,
            temperature=0,
        )
        text = response.choices[0].message.content or ""
        logger.debug(f"Vision completion returned {len(text)} characters from {self.model}")
        return text
