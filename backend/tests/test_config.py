from __future__ import annotations

import pytest

from config import Configuration
from errors import ConfigurationError
from utils import extract_json_text, mask_secret


def test_from_env_reads_places_key_and_overrides(monkeypatch) -> None:
    monkeypatch.setenv("PLACES_API_KEY", "abcd-secret-wxyz")
    monkeypatch.setenv("PLACES_TIMEOUT", "12.5")
    monkeypatch.setenv("DEFAULT_RADIUS_M", "2500")
    cfg = Configuration.from_env({"photo_max_width": 800})

    assert cfg.places_api_key == "abcd-secret-wxyz"
    assert cfg.places_timeout == 12.5
    assert cfg.default_radius_m == 2500
    assert cfg.photo_max_width == 800
    assert "abcd...wxyz" in cfg.log_summary()
    assert "secret" not in cfg.log_summary()


def test_google_key_alias(monkeypatch) -> None:
    monkeypatch.delenv("PLACES_API_KEY", raising=False)
    monkeypatch.setenv("GOOGLE_PLACES_API_KEY", "legacy-key")
    assert Configuration.from_env().places_api_key == "legacy-key"


def test_require_places_key() -> None:
    with pytest.raises(ConfigurationError, match="PLACES_API_KEY"):
        Configuration(places_api_key=None).require_places_key()
    assert Configuration(places_api_key="k").require_places_key() == "k"


def test_defaults() -> None:
    cfg = Configuration()
    assert cfg.places_timeout == 30
    assert cfg.llm_timeout == 30
    assert cfg.default_radius_m == 5000
    assert cfg.llm_configured is False
    assert Configuration(llm_provider="ollama").sanitized_ollama_url() == "http://localhost:11434/v1"


def test_mask_secret() -> None:
    assert mask_secret(None) == "unset"
    assert mask_secret("short") == "*****"


def test_extract_json_text_prefers_fenced_block() -> None:
    text = 'noise {"a": 0} ```json\n{"a": 1}\n``` more'
    assert extract_json_text(text) == '{"a": 1}'
    assert extract_json_text('before {"b": 2} after') == '{"b": 2}'
    assert extract_json_text("no braces") is None
