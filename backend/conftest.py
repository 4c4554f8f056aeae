import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest


# Ensure backend/src is on sys.path for tests so that imports like `services.*` work.
ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from config import Configuration  # noqa: E402
from models import Shop  # noqa: E402


def _shop(idx: int, rating: float = 4.5, reviews: int = 100) -> Shop:
    return Shop(
        shop_id=f"place-{idx}",
        name=f"Cafe {idx}",
        address=f"{idx} Market St",
        rating=rating,
        review_count=reviews,
        lat=37.77 + idx / 1000,
        lng=-122.41,
    )


def raw_place(idx: int, rating=4.5, reviews=100, **extra) -> dict:
    place = {
        "place_id": f"place-{idx}",
        "name": f"Cafe {idx}",
        "vicinity": f"{idx} Market St",
        "rating": rating,
        "user_ratings_total": reviews,
        "geometry": {"location": {"lat": 37.77 + idx / 1000, "lng": -122.41}},
    }
    place.update(extra)
    return place


def fake_response(payload=None, status_code: int = 200, text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = status_code < 400
    resp.reason = "OK" if resp.ok else "Error"
    resp.text = text
    resp.json.return_value = payload
    return resp


@pytest.fixture
def cfg(monkeypatch) -> Configuration:
    for name in ("LLM_PROVIDER", "LLM_BASE_URL", "LOCAL_LLM"):
        monkeypatch.delenv(name, raising=False)
    return Configuration(places_api_key="test-key-123456")


@pytest.fixture
def make_shop():
    return _shop


@pytest.fixture
def seeds():
    return [_shop(i, rating=4.9 - i * 0.1) for i in range(8)]


@pytest.fixture
def places_session():
    """requests.Session stand-in answering by URL path."""

    def build(geocode=None, nearby=None) -> MagicMock:
        session = MagicMock()

        def get(url, headers=None, params=None, timeout=None):
            if url.endswith("/geocode/json"):
                return fake_response(geocode)
            if url.endswith("/nearbysearch/json"):
                return fake_response(nearby)
            return fake_response({}, status_code=404, text="not found")

        session.get.side_effect = get
        return session

    return build
