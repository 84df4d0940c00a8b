from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "llm_provider": "ollama",
    "llm_model": "qwen2.5vl:7b",
    "ollama_url": "http://localhost:11434",
    "llm_thinking": False,
    "max_upload_bytes": 10 * 1024 * 1024,
    "default_question_count": 5,
    "default_difficulty": "medium",
    "default_question_type": "single-choice",
    "analysis_temperature": 0.3,
    "generation_temperature": 0.7,
    "analyze_batch_together": False,
}


@dataclass
class Settings:
    llm_provider: str = DEFAULTS["llm_provider"]
    llm_model: str = DEFAULTS["llm_model"]
    ollama_url: str = DEFAULTS["ollama_url"]
    llm_thinking: bool = DEFAULTS["llm_thinking"]
    max_upload_bytes: int = DEFAULTS["max_upload_bytes"]
    default_question_count: int = DEFAULTS["default_question_count"]
    default_difficulty: str = DEFAULTS["default_difficulty"]
    default_question_type: str = DEFAULTS["default_question_type"]
    analysis_temperature: float = DEFAULTS["analysis_temperature"]
    generation_temperature: float = DEFAULTS["generation_temperature"]
    analyze_batch_together: bool = DEFAULTS["analyze_batch_together"]

    @property
    def max_upload_mb(self) -> float:
        return self.max_upload_bytes / (1024 * 1024)

    def to_dict(self) -> dict:
        return {
            "llm_provider": self.llm_provider,
            "llm_model": self.llm_model,
            "ollama_url": self.ollama_url,
            "llm_thinking": self.llm_thinking,
            "max_upload_bytes": self.max_upload_bytes,
            "default_question_count": self.default_question_count,
            "default_difficulty": self.default_difficulty,
            "default_question_type": self.default_question_type,
            "analysis_temperature": self.analysis_temperature,
            "generation_temperature": self.generation_temperature,
            "analyze_batch_together": self.analyze_batch_together,
        }


def load_settings() -> Settings:
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        known = {f.name for f in Settings.__dataclass_fields__.values()}
        filtered = {k: v for k, v in raw.items() if k in known}
        return Settings(**filtered)
    return Settings()


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
