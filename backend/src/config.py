from __future__ import annotations

import os
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from errors import ConfigurationError
from utils import mask_secret

load_dotenv()


class Configuration(BaseModel):
    # Google Places / Geocoding
    places_api_key: Optional[str] = Field(default=None)
    places_base_url: str = Field(default="https://maps.googleapis.com")
    places_timeout: float = Field(default=30.0)
    default_radius_m: int = Field(default=5000)
    photo_max_width: int = Field(default=400)

    # LLM judge
    local_llm: Optional[str] = Field(default=None)
    llm_provider: Optional[str] = Field(default=None)
    llm_api_key: Optional[str] = Field(default=None)
    llm_base_url: Optional[str] = Field(default=None)
    llm_model_id: Optional[str] = Field(default=None)
    # native ollama base (without /v1)
    ollama_base_url: str = Field(default="http://localhost:11434")
    llm_timeout: float = Field(default=30.0)
    llm_temperature: float = Field(default=0.2)

    # Tournament sessions
    session_ttl_sec: int = Field(default=3600)

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "places_api_key": os.getenv("PLACES_API_KEY") or os.getenv("GOOGLE_PLACES_API_KEY"),
            "places_base_url": os.getenv("PLACES_BASE_URL"),
            "places_timeout": os.getenv("PLACES_TIMEOUT"),
            "default_radius_m": os.getenv("DEFAULT_RADIUS_M"),
            "photo_max_width": os.getenv("PHOTO_MAX_WIDTH"),
            # LLM
            "local_llm": os.getenv("LOCAL_LLM"),
            "llm_provider": os.getenv("LLM_PROVIDER"),
            "llm_api_key": os.getenv("LLM_API_KEY"),
            "llm_base_url": os.getenv("LLM_BASE_URL"),
            "llm_model_id": os.getenv("LLM_MODEL_ID"),
            "ollama_base_url": os.getenv("OLLAMA_BASE_URL"),
            "llm_timeout": os.getenv("LLM_TIMEOUT"),
            "llm_temperature": os.getenv("LLM_TEMPERATURE"),
            "session_ttl_sec": os.getenv("SESSION_TTL_SEC"),
        }

        for k, v in env_map.items():
            if v is None or v == "":
                continue
            raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    def require_places_key(self) -> str:
        if not self.places_api_key:
            raise ConfigurationError("PLACES_API_KEY is not set in environment variables")
        return self.places_api_key

    @property
    def llm_configured(self) -> bool:
        return bool(self.llm_provider or self.llm_base_url or self.local_llm)

    def log_summary(self) -> str:
        return (
            "places=%s base=%s timeout=%s radius_m=%s llm_provider=%s llm_timeout=%s api_key=%s"
            % (
                bool(self.places_api_key),
                self.places_base_url,
                self.places_timeout,
                self.default_radius_m,
                self.llm_provider or "unset",
                self.llm_timeout,
                mask_secret(self.places_api_key),
            )
        )

    def sanitized_ollama_url(self) -> str:
        base = (self.ollama_base_url or "http://localhost:11434").rstrip("/")
        if not base.endswith("/v1"):
            base = f"{base}/v1"
        return base
