"""Entry point for the FastAPI-powered movie night service."""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from .config import settings
from .languages import LANGUAGE_OPTIONS
from .models import ReplaceRequest, SearchRequest, WatchedRequest
from .services.catalog import InMemoryWatchHistory
from .services.movie_night import MovieNightService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    if not isinstance(getattr(fastapi_app.state, "movie_night_service", None), MovieNightService):
        fastapi_app.state.movie_night_service = MovieNightService(
            settings, InMemoryWatchHistory()
        )
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Movie-night bundles that fit your viewing time",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_movie_night_service(app: FastAPI) -> MovieNightService:
    service = getattr(app.state, "movie_night_service", None)
    if not isinstance(service, MovieNightService):
        raise RuntimeError("Movie night service not initialised")
    return service


async def _parse_body(request: Request, model: type[BaseModel]) -> Any:
    body = await request.body()
    if not body.strip():
        payload: Any = {}
    else:
        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid payload") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400, detail=exc.errors(include_url=False, include_context=False)
        ) from exc


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/providers")
    async def list_providers() -> dict[str, Any]:
        return {
            "providers": [
                definition.to_payload() for definition in settings.provider_definitions
            ]
        }

    @fastapi_app.get("/api/languages")
    async def list_languages() -> dict[str, Any]:
        return {"languages": [option.to_payload() for option in LANGUAGE_OPTIONS]}

    @fastapi_app.post("/api/recommendations")
    async def recommendations_endpoint(request: Request) -> JSONResponse:
        service = get_movie_night_service(fastapi_app)
        search: SearchRequest = await _parse_body(request, SearchRequest)
        movies = await service.recommend(search)
        return JSONResponse({"movies": [movie.to_payload() for movie in movies]})

    @fastapi_app.post("/api/combinations")
    async def combinations_endpoint(request: Request) -> JSONResponse:
        service = get_movie_night_service(fastapi_app)
        search: SearchRequest = await _parse_body(request, SearchRequest)
        if search.filters.total_time is None:
            raise HTTPException(
                status_code=400, detail="totalTime is required to build combinations"
            )
        session = await service.create_session(search)
        return JSONResponse(session.to_payload())

    @fastapi_app.get("/api/sessions/{session_id}")
    async def session_endpoint(session_id: str) -> JSONResponse:
        service = get_movie_night_service(fastapi_app)
        try:
            session = service.get_session(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Session not found") from exc
        return JSONResponse(session.to_payload())

    @fastapi_app.post("/api/sessions/{session_id}/replace")
    async def replace_endpoint(session_id: str, request: Request) -> JSONResponse:
        service = get_movie_night_service(fastapi_app)
        body: ReplaceRequest = await _parse_body(request, ReplaceRequest)
        try:
            result = await service.replace_movie(
                session_id, body.combination_index, body.movie_id
            )
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Session not found") from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        payload = result.to_payload()
        if result.replacement is None:
            return JSONResponse(payload, status_code=404)
        return JSONResponse(payload)

    @fastapi_app.post("/api/sessions/{session_id}/watched")
    async def watched_endpoint(session_id: str, request: Request) -> JSONResponse:
        service = get_movie_night_service(fastapi_app)
        body: WatchedRequest = await _parse_body(request, WatchedRequest)
        try:
            result = await service.mark_watched(
                session_id, body.movie_id, might_watch_again=body.might_watch_again
            )
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Session not found") from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return JSONResponse(result.to_payload())


app = create_app()
