"""Pull structured JSON out of free-form model responses."""
from __future__ import annotations

import json
import re
from collections.abc import Iterable, Iterator

_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)
_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
_decoder = json.JSONDecoder()


def iter_json_objects(text: str) -> Iterator[dict]:
    """Yield each top-level JSON object embedded in *text*, in order.

    Objects nested inside an already decoded object are not yielded again.
    """
    pos = text.find("{")
    while pos != -1:
        try:
            obj, end = _decoder.raw_decode(text, pos)
        except json.JSONDecodeError:
            pos = text.find("{", pos + 1)
            continue
        yield obj
        pos = text.find("{", end)


def extract_json(text: str, keys: Iterable[str] = ()) -> dict | None:
    """Extract the answer object from an LLM response.

    ``<think>`` blocks are dropped first.  Objects inside code fences win
    over bare ones.  Among the candidates, the last one carrying any of
    *keys* is returned (models often draft an example before the answer),
    falling back to the last object overall.
    """
    text = _THINK_RE.sub("", text).strip()
    keys = tuple(keys)

    candidates = [obj for block in _FENCE_RE.findall(text) for obj in iter_json_objects(block)]
    if not candidates:
        candidates = list(iter_json_objects(text))
    if not candidates:
        return None

    for obj in reversed(candidates):
        if any(k in obj for k in keys):
            return obj
    return candidates[-1]
