from __future__ import annotations

import os

from lecture_assistant.providers.base import LLMProvider, parse_data_uri


def _media_part(uri: str, index: int) -> dict:
    mime, _ = parse_data_uri(uri)
    if mime == "application/pdf":
        return {"type": "file", "file": {"filename": f"lecture-{index}.pdf", "file_data": uri}}
    return {"type": "image_url", "image_url": {"url": uri}}


class OpenAIProvider(LLMProvider):
    def __init__(self, model: str = "gpt-4o-mini"):
        import openai
        self.client = openai.AsyncOpenAI(
            api_key=os.environ.get("OPENAI_API_KEY", ""),
        )
        self.model = model

    async def generate(
        self,
        prompt: str,
        temperature: float = 0.7,
        media: list[str] | None = None,
        thinking: bool = False,
    ) -> str:
        content: list[dict] = [{"type": "text", "text": prompt}]
        content.extend(_media_part(uri, i) for i, uri in enumerate(media or [], 1))
        resp = await self.client.chat.completions.create(
            model=self.model,
            temperature=temperature,
            messages=[{"role": "user", "content": content}],
        )
        return resp.choices[0].message.content

    def name(self) -> str:
        return f"openai/{self.model}"
