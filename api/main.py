#!/usr/bin/env python3
import base64
import binascii
import hmac
import json
import logging
import os
from typing import Any

import anyio
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse, StreamingResponse
from pydantic import BaseModel

from config.settings import Settings, load_settings
from engine.catalog import DestinationCatalog
from engine.errors import (
    AnalysisIncompleteError,
    JobBusyError,
    JobNotFoundError,
    PlaylistTooLargeError,
    TransferError,
    ValidationError,
)
from engine.job_store import JobStore
from engine.maintenance import build_maintenance_scheduler, run_maintenance_once
from engine.migration import MigrationService
from engine.paths import build_engine_paths, ensure_dir
from engine.progress import ProgressBroadcaster
from engine.runtime import get_runtime_info
from engine.search_cache import SearchCache
from spotify.client import SpotifyAPIError, SpotifyCatalogClient
from youtube.client import YouTubeAuthError, YouTubeCatalog

APP_NAME = "Migratr API"
_BASIC_AUTH_USER = os.environ.get("MIGRATR_BASIC_AUTH_USER")
_BASIC_AUTH_PASS = os.environ.get("MIGRATR_BASIC_AUTH_PASS")
_BASIC_AUTH_ENABLED = bool(_BASIC_AUTH_USER and _BASIC_AUTH_PASS)
_UNPROTECTED_PATHS = {"/health"}

app = FastAPI(title=APP_NAME)
app.state.service = None
app.state.scheduler = None


def _check_basic_auth(header_value):
    if not header_value or not header_value.startswith("Basic "):
        return False
    token = header_value[6:].strip()
    try:
        decoded = base64.b64decode(token.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return False
    if ":" not in decoded:
        return False
    user, password = decoded.split(":", 1)
    return hmac.compare_digest(user, _BASIC_AUTH_USER) and hmac.compare_digest(password, _BASIC_AUTH_PASS)


def _setup_logging(log_dir):
    ensure_dir(log_dir)
    root = logging.getLogger("")
    log_path = os.path.join(log_dir, "migratr.log")
    root.setLevel(logging.INFO)
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler):
            if os.path.abspath(getattr(handler, "baseFilename", "")) == os.path.abspath(log_path):
                return
    file_handler = logging.FileHandler(log_path)
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    file_handler.setLevel(logging.INFO)
    root.addHandler(file_handler)


class AnalyzeRequest(BaseModel):
    session_id: str | None = None
    playlist: dict[str, Any] | None = None
    tracks: list[dict[str, Any]] | None = None


class ManualVideoRequest(BaseModel):
    video_id: str | None = None


class MigrateRequest(BaseModel):
    job_id: str
    session_id: str


def init_state(settings: Settings, *, catalog: DestinationCatalog | None = None) -> MigrationService:
    """Build the process-scoped stores and service and attach them to ``app.state``."""
    paths = build_engine_paths(
        settings.cache_dir,
        settings.log_dir,
        os.path.dirname(settings.youtube_token_path),
    )
    search_cache = SearchCache(
        paths.search_cache_file,
        ttl_seconds=settings.search_cache_ttl_seconds,
        flush_every=settings.search_cache_flush_every,
    )
    job_store = JobStore(
        paths.cache_dir,
        max_playlist_size=settings.max_playlist_size,
        checkpoint_every=settings.job_checkpoint_every,
    )
    broadcaster = ProgressBroadcaster()
    if catalog is None:
        catalog = YouTubeCatalog(settings.youtube_token_path)
    service = MigrationService(job_store, search_cache, broadcaster, catalog, settings)
    app.state.settings = settings
    app.state.paths = paths
    app.state.service = service
    return service


@app.middleware("http")
async def basic_auth_middleware(request: Request, call_next):
    if not _BASIC_AUTH_ENABLED:
        return await call_next(request)
    if request.method == "OPTIONS" or request.url.path in _UNPROTECTED_PATHS:
        return await call_next(request)
    auth_header = request.headers.get("authorization")
    if not _check_basic_auth(auth_header):
        return PlainTextResponse(
            "Unauthorized",
            status_code=401,
            headers={"WWW-Authenticate": "Basic"},
        )
    return await call_next(request)


@app.on_event("startup")
async def startup():
    settings = load_settings()
    _setup_logging(settings.log_dir)
    service = init_state(settings)
    run_maintenance_once(service.job_store, service.search_cache, settings)
    app.state.scheduler = build_maintenance_scheduler(service.job_store, service.search_cache, settings)
    app.state.scheduler.start()
    logging.info(
        "%s started (max_playlist_size=%d rate_limit_delay_ms=%d cache=%s)",
        APP_NAME,
        settings.max_playlist_size,
        settings.rate_limit_delay_ms,
        settings.cache_dir,
    )


@app.on_event("shutdown")
async def shutdown():
    scheduler = app.state.scheduler
    if scheduler:
        scheduler.shutdown(wait=False)
    service = app.state.service
    if service is not None:
        service.shutdown()


def _service() -> MigrationService:
    service = app.state.service
    if service is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return service


def _require_youtube_auth(service: MigrationService) -> None:
    is_authenticated = getattr(service.catalog, "is_authenticated", None)
    if callable(is_authenticated) and not is_authenticated():
        raise HTTPException(status_code=401, detail="Not authenticated with YouTube")


def _spotify_client(request: Request) -> SpotifyCatalogClient:
    header = request.headers.get("x-spotify-token") or ""
    if not header.strip():
        raise HTTPException(status_code=401, detail="Not authenticated with Spotify")
    return SpotifyCatalogClient(header.strip())


async def _spotify_call(func, *args, failure: str):
    try:
        return await anyio.to_thread.run_sync(func, *args)
    except SpotifyAPIError as exc:
        if exc.status_code == 401:
            raise HTTPException(status_code=401, detail=str(exc))
        logging.error("%s: %s", failure, exc)
        raise HTTPException(status_code=502, detail=failure)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def _format_sse(event: dict[str, Any]) -> str:
    return f"data: {json.dumps(event)}\n\n"


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/version")
async def version():
    return get_runtime_info()


@app.get("/api/progress/{session_id}")
async def progress_stream(session_id: str):
    broadcaster = _service().broadcaster
    sink = broadcaster.subscribe(session_id)

    async def stream():
        try:
            async for event in sink.events():
                yield _format_sse(event)
        finally:
            broadcaster.unsubscribe(session_id, sink)

    headers = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
    return StreamingResponse(stream(), media_type="text/event-stream", headers=headers)


@app.get("/api/spotify/playlists")
async def spotify_playlists(request: Request):
    client = _spotify_client(request)
    return await _spotify_call(client.get_user_playlists, failure="Failed to fetch playlists")


@app.get("/api/spotify/playlist/{playlist_id}")
async def spotify_playlist(playlist_id: str, request: Request):
    client = _spotify_client(request)
    return await _spotify_call(client.get_playlist, playlist_id, failure="Failed to fetch playlist")


@app.get("/api/spotify/playlist/{playlist_id}/tracks")
async def spotify_playlist_tracks(playlist_id: str, request: Request):
    client = _spotify_client(request)
    return await _spotify_call(client.get_playlist_tracks, playlist_id, failure="Failed to fetch tracks")


@app.post("/api/youtube/analyze")
async def analyze_playlist(payload: AnalyzeRequest):
    service = _service()
    _require_youtube_auth(service)
    try:
        job = service.create_job(payload.session_id or "", payload.playlist, payload.tracks)
    except PlaylistTooLargeError as exc:
        raise HTTPException(
            status_code=400,
            detail={
                "error": f"Playlist too large. Maximum {exc.max_size} tracks allowed.",
                "max_size": exc.max_size,
                "track_count": exc.track_count,
            },
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    service.start_analysis(job.id)
    return {"job_id": job.id, "status": job.status, "track_count": len(job.tracks)}


@app.get("/api/youtube/analysis/{job_id}")
async def get_analysis(job_id: str):
    service = _service()
    try:
        job = service.get_job(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    payload = job.to_dict()
    payload["stats"] = job.stats()
    payload["running"] = service.is_running(job_id)
    return payload


@app.get("/api/youtube/jobs")
async def list_analysis_jobs(session_id: str = Query(...)):
    jobs = _service().list_jobs(session_id)
    return {"jobs": [job.summary() for job in jobs]}


@app.post("/api/youtube/analysis/{job_id}/reanalyze", status_code=202)
async def reanalyze(job_id: str):
    service = _service()
    _require_youtube_auth(service)
    try:
        service.start_analysis(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    except JobBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return {"job_id": job_id, "status": "analyzing"}


@app.post("/api/youtube/analysis/{job_id}/track/{track_index}/manual")
async def set_manual_video(job_id: str, track_index: int, payload: ManualVideoRequest):
    service = _service()
    try:
        video_id = service.set_manual(job_id, track_index, payload.video_id)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job or track not found")
    return {"success": True, "video_id": video_id}


@app.post("/api/youtube/migrate")
async def migrate_playlist(payload: MigrateRequest):
    service = _service()
    _require_youtube_auth(service)
    try:
        result = await service.migrate(payload.job_id, payload.session_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Analysis job not found")
    except AnalysisIncompleteError:
        raise HTTPException(status_code=400, detail="Analysis not complete")
    except JobBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except TransferError as exc:
        raise HTTPException(status_code=500, detail={"error": "Migration failed", "details": str(exc)})
    return result.to_dict()


@app.get("/api/youtube/playlists")
async def youtube_playlists():
    service = _service()
    _require_youtube_auth(service)
    list_playlists = getattr(service.catalog, "list_playlists", None)
    if list_playlists is None:
        raise HTTPException(status_code=501, detail="Playlist listing not supported")
    try:
        return await list_playlists()
    except YouTubeAuthError as exc:
        raise HTTPException(status_code=401, detail=str(exc))
    except Exception:
        logging.exception("Error fetching YouTube playlists")
        raise HTTPException(status_code=500, detail="Failed to fetch playlists")


@app.get("/api/youtube/config")
async def youtube_config():
    return _service().config_snapshot()
