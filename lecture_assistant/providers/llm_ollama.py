from __future__ import annotations

import logging
import time

import httpx

from lecture_assistant.providers.base import LLMProvider, parse_data_uri

log = logging.getLogger("lecture_assistant.llm")


class OllamaProvider(LLMProvider):
    def __init__(self, base_url: str = "http://localhost:11434", model: str = "qwen2.5vl:7b"):
        self.base_url = base_url.rstrip("/")
        self.model = model

    async def generate(
        self,
        prompt: str,
        temperature: float = 0.7,
        media: list[str] | None = None,
        thinking: bool = False,
    ) -> str:
        body: dict = {
            "model": self.model,
            "prompt": prompt,
            "temperature": temperature,
            "stream": False,
            "think": thinking,
        }
        images = []
        for uri in media or []:
            mime, payload = parse_data_uri(uri)
            if not mime.startswith("image/"):
                raise ValueError(f"Ollama cannot read {mime} attachments")
            images.append(payload)
        if images:
            body["images"] = images

        log.info("── PROMPT (%s, %d images) ──\n%s", self.model, len(images), prompt)
        t0 = time.monotonic()
        async with httpx.AsyncClient(timeout=180.0) as client:
            resp = await client.post(f"{self.base_url}/api/generate", json=body)
            resp.raise_for_status()
            data = resp.json()
        elapsed = time.monotonic() - t0
        response = data["response"]
        tokens = data.get("eval_count", "?")
        log.info("── RESPONSE (%.1fs, %s tokens) ──\n%s", elapsed, tokens, response)
        return response

    def name(self) -> str:
        return f"ollama/{self.model}"
