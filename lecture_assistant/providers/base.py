from __future__ import annotations

from abc import ABC, abstractmethod


def parse_data_uri(uri: str) -> tuple[str, str]:
    """Split ``data:<mime>;base64,<payload>`` into (mime, payload)."""
    if not uri.startswith("data:") or "," not in uri:
        raise ValueError(f"not a data URI: {uri[:40]!r}")
    header, payload = uri[5:].split(",", 1)
    mime = header.split(";", 1)[0] or "application/octet-stream"
    return mime, payload


class LLMProvider(ABC):
    @abstractmethod
    async def generate(
        self,
        prompt: str,
        temperature: float = 0.7,
        media: list[str] | None = None,
        thinking: bool = False,
    ) -> str:
        """Return the model's text reply.

        *media* holds base64 data URIs (images, PDFs) presented alongside
        the prompt.
        """
        ...

    @abstractmethod
    def name(self) -> str:
        ...
