from __future__ import annotations

import os

from lecture_assistant.providers.base import LLMProvider, parse_data_uri


def _media_block(uri: str) -> dict:
    mime, payload = parse_data_uri(uri)
    source = {"type": "base64", "media_type": mime, "data": payload}
    if mime == "application/pdf":
        return {"type": "document", "source": source}
    return {"type": "image", "source": source}


class AnthropicProvider(LLMProvider):
    def __init__(self, model: str = "claude-sonnet-4-20250514"):
        import anthropic
        self.client = anthropic.AsyncAnthropic(
            api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
        )
        self.model = model

    async def generate(
        self,
        prompt: str,
        temperature: float = 0.7,
        media: list[str] | None = None,
        thinking: bool = False,
    ) -> str:
        content = [_media_block(uri) for uri in media or []]
        content.append({"type": "text", "text": prompt})
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=4096,
            temperature=temperature,
            messages=[{"role": "user", "content": content}],
        )
        return message.content[0].text

    def name(self) -> str:
        return f"anthropic/{self.model}"
