"""
Tests for the OpenAI vision-completion provider
"""

import asyncio
import base64
from unittest.mock import AsyncMock, MagicMock

from services.providers import OpenAIVisionProvider, VisionCompletionProvider


def make_client(reply):
    client = MagicMock()
    message = MagicMock()
    message.content = reply
    response = MagicMock()
    response.choices = [MagicMock(message=message)]
    client.chat.completions.create = AsyncMock(return_value=response)
    return client


class TestOpenAIVisionProvider:
    """Test request building and reply extraction"""

    def test_is_completion_provider(self):
        """The provider satisfies the protocol"""
        provider = OpenAIVisionProvider(api_key="test", client=make_client("[]"))
        assert isinstance(provider, VisionCompletionProvider)

    def test_complete_sends_image_and_prompts(self):
        """The image travels as a data URL next to the prompt"""
        client = make_client('[{"boundingBox": {}}]')
        provider = OpenAIVisionProvider(api_key="test", model="gpt-4o-mini", max_tokens=512, client=client)

        reply = asyncio.run(provider.complete(b"\x89PNG", "image/png", "find things", "be precise"))

        assert reply == '[{"boundingBox": {}}]'
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == 512
        assert kwargs["temperature"] == 0

        system, user = kwargs["messages"]
        assert system == {"role": "system", "content": "be precise"}
        text, image = user["content"]
        assert text == {"type": "text", "text": "find things"}
        expected_url = "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode()
        assert image["image_url"]["url"] == expected_url

    def test_no_system_prompt(self):
        """Without a system prompt only the user message is sent"""
        client = make_client("ok")
        provider = OpenAIVisionProvider(api_key="test", client=client)

        asyncio.run(provider.complete(b"data", "image/jpeg", "prompt"))

        messages = client.chat.completions.create.call_args.kwargs["messages"]
        assert [m["role"] for m in messages] == ["user"]

    def test_empty_content(self):
        """A null message content becomes an empty string"""
        provider = OpenAIVisionProvider(api_key="test", client=make_client(None))
        assert asyncio.run(provider.complete(b"data", "image/png", "prompt")) == ""
