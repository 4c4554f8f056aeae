from __future__ import annotations

from typing import Any, Dict, Optional

import requests
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger
from pydantic import BaseModel, Field

from config import Configuration
from models import Shop, Tournament
from services.orchestrator import OperationResult, battle, discover, error_result, locate
from services.places import GEOCODE_PATH
from services.session import TournamentSessionManager
from services.tournament import play_selected_battle, reset_tournament, select_contender, start_tournament


app = FastAPI(title="Coffee Shop Tournament")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

sessions = TournamentSessionManager(ttl_sec=Configuration.from_env().session_ttl_sec)


class LocationRequest(BaseModel):
    location: Optional[str] = Field(None, description="Place name, address or city, e.g. 'San Francisco, CA'")


class CoffeeShopsRequest(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius: Optional[int] = Field(None, description="Search radius in meters (default 5000)")


class ShopBrief(BaseModel):
    name: str
    address: str
    rating: float = Field(..., ge=0, le=5)
    userRatingsTotal: int = Field(..., ge=0)

    def to_shop(self) -> Shop:
        return Shop.from_brief(self.name, self.address, self.rating, self.userRatingsTotal)


class BattleRequest(BaseModel):
    shop1: Optional[ShopBrief] = None
    shop2: Optional[ShopBrief] = None


class StartTournamentRequest(BaseModel):
    location: Optional[str] = None
    session_id: Optional[str] = None
    radius: Optional[int] = None


class SelectRequest(BaseModel):
    session_id: str
    shop_id: Optional[str] = None


class SessionRequest(BaseModel):
    session_id: str


def _respond(result: OperationResult) -> JSONResponse:
    return JSONResponse(status_code=result.status, content=result.body)


def _tournament_body(session_id: str, tournament: Tournament, **extra: Any) -> Dict[str, Any]:
    return {"success": True, "session_id": session_id, "tournament": tournament.to_dict(), **extra}


@app.exception_handler(RequestValidationError)
async def validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    first = (exc.errors() or [{}])[0]
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content={"success": False, "error": f"{where}: {msg}" if where else msg})


@app.get("/favicon.ico")
def favicon() -> Response:
    return Response(status_code=204)


@app.get("/healthz")
def healthz() -> dict:
    cfg = Configuration.from_env()
    logger.info("cfg: {}", cfg.log_summary())
    return {"status": "ok"}


@app.get("/health/places")
def health_places() -> dict:
    cfg = Configuration.from_env()
    try:
        key = cfg.require_places_key()
        r = requests.get(
            f"{cfg.places_base_url.rstrip('/')}{GEOCODE_PATH}",
            params={"address": "San Francisco, CA", "key": key},
            timeout=cfg.places_timeout,
        )
        ok = r.ok and r.json().get("status") == "OK"
    except Exception as exc:
        logger.warning("places health check failed: {}", exc)
        ok = False
    return {"ok": ok}


@app.get("/health/llm")
def health_llm() -> dict:
    cfg = Configuration.from_env()
    provider = (cfg.llm_provider or "").lower()
    ok = False
    detail = None
    try:
        if provider == "ollama":
            base = cfg.ollama_base_url.rstrip("/")
            r = requests.get(f"{base}/api/tags", timeout=5)
            ok = r.ok
            if r.ok:
                detail = r.json().get("models", [])
        elif cfg.llm_base_url:
            # OpenAI-compatible
            r = requests.get(f"{cfg.llm_base_url.rstrip('/')}/models", timeout=5)
            ok = r.ok
        elif provider == "google":
            ok = bool(cfg.llm_api_key)
    except Exception as exc:
        ok = False
        detail = str(exc)
    return {"ok": ok, "provider": provider or "unset", "fallback_only": not cfg.llm_configured, "detail": detail}


@app.post("/location")
async def location(req: LocationRequest) -> JSONResponse:
    return _respond(await locate(Configuration.from_env(), req.location))


@app.post("/coffee-shops")
async def coffee_shops(req: CoffeeShopsRequest) -> JSONResponse:
    return _respond(await discover(Configuration.from_env(), req.lat, req.lng, req.radius))


@app.post("/battle")
async def run_battle(req: BattleRequest) -> JSONResponse:
    shop1 = req.shop1.to_shop() if req.shop1 else None
    shop2 = req.shop2.to_shop() if req.shop2 else None
    return _respond(await battle(Configuration.from_env(), shop1, shop2))


@app.post("/tournament/start")
async def tournament_start(req: StartTournamentRequest) -> JSONResponse:
    try:
        sid, tournament = await start_tournament(
            Configuration.from_env(), sessions, req.location, session_id=req.session_id, radius=req.radius
        )
    except Exception as exc:
        return _respond(error_result(exc))
    return JSONResponse(status_code=200, content=_tournament_body(sid, tournament))


@app.post("/tournament/select")
async def tournament_select(req: SelectRequest) -> JSONResponse:
    try:
        tournament = select_contender(sessions, req.session_id, req.shop_id)
    except Exception as exc:
        return _respond(error_result(exc))
    return JSONResponse(status_code=200, content=_tournament_body(req.session_id, tournament))


@app.post("/tournament/battle")
async def tournament_battle(req: SessionRequest) -> JSONResponse:
    try:
        result, tournament = await play_selected_battle(Configuration.from_env(), sessions, req.session_id)
    except Exception as exc:
        return _respond(error_result(exc))
    return JSONResponse(
        status_code=200,
        content=_tournament_body(req.session_id, tournament, battle=result.to_dict()),
    )


@app.post("/tournament/reset")
async def tournament_reset(req: SessionRequest) -> JSONResponse:
    try:
        tournament = reset_tournament(sessions, req.session_id)
    except Exception as exc:
        return _respond(error_result(exc))
    return JSONResponse(status_code=200, content=_tournament_body(req.session_id, tournament))


@app.get("/tournament/{session_id}")
async def tournament_get(session_id: str) -> JSONResponse:
    try:
        tournament = sessions.get(session_id)
    except Exception as exc:
        return _respond(error_result(exc))
    return JSONResponse(status_code=200, content=_tournament_body(session_id, tournament))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8010, reload=True)
