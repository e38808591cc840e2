from __future__ import annotations

import traceback
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, Response

from shared.relay_logging import relay_logging
from schedule_relay.config import RelaySettings, load_settings, validate_settings
from schedule_relay.pipeline import SchedulePipeline
from schedule_relay.version import VERSION

DOWNLOAD_PATH = "/api/download-schedule"


def _log_failure(exc: Exception) -> None:
    details = []
    for attr in ("status_code", "error_code", "body"):
        value = getattr(exc, attr, None)
        if value is not None:
            details.append(f"{attr}={value}")
    suffix = f" ({', '.join(details)})" if details else ""
    relay_logging.error(f"Error: {type(exc).__name__}: {exc}{suffix}", exc_info=exc)


def error_response(exc: Exception, settings: RelaySettings) -> JSONResponse:
    payload = {"error": str(exc)}
    if settings.is_development:
        payload["stack"] = "".join(traceback.format_exception(exc))
    return JSONResponse(status_code=500, content=payload)


def create_app(settings: Optional[RelaySettings] = None) -> FastAPI:
    """
    Build the API.  Settings are validated here, so a missing required value fails
    startup before any request (and any network call) is served.
    """
    settings = validate_settings(settings) if settings is not None else load_settings()

    app = FastAPI(title="Assembly Schedule API", version=VERSION)
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def health():
        return {
            "status": "ok",
            "message": "Assembly Schedule API Server",
            "endpoints": {
                "health": "GET /",
                "downloadFile": f"GET {DOWNLOAD_PATH}",
            },
        }

    @app.get(DOWNLOAD_PATH)
    async def download_schedule(request: Request):
        cfg: RelaySettings = request.app.state.settings
        relay_logging.info("Fetching assembly schedule...")
        try:
            content = await SchedulePipeline(cfg).run()
        except Exception as e:
            _log_failure(e)
            return error_response(e, cfg)
        relay_logging.info("File sent successfully")
        return Response(content=content.data, media_type=content.media_type)

    return app
