"""
HTTP call API over the contract registry.

GET /wasm/contract/{address}/{init|handle|query}/{msg}
    `msg` is the base64 (standard or URL-safe, padding optional) of a UTF-8
    JSON payload. Always answers 200 with ``{"data": <result>}`` or
    ``{"error": "<message>"}``.
GET /health
    ``{"status": "ok", "contracts": [...]}``
GET /metrics
    Prometheus text format.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, cast

import uvicorn
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from cosmwasm_simulate.constants import DEFAULT_HOST, ENTRY_POINTS, REST_BASE_PATH
from cosmwasm_simulate.errors import SimulateError, UnsupportedRequest
from cosmwasm_simulate.registry import ContractRegistry
from cosmwasm_simulate.utils import decode_base64_text, json_or_text, log_exception

logger = logging.getLogger(__name__)


def build_app(registry: ContractRegistry) -> Starlette:
    # Sync endpoints run on starlette's worker threads, so a call blocks on
    # the registry lock without stalling the event loop.
    def call_contract(request: Request) -> JSONResponse:
        address = request.path_params["address"]
        entry_point = request.path_params["entry_point"]
        try:
            if entry_point not in ENTRY_POINTS:
                raise UnsupportedRequest(f"entry point {entry_point!r}")
            payload = decode_base64_text(request.path_params["msg"])
            result = registry.call(address, entry_point, payload)
        except SimulateError as e:
            logger.debug(f"{request.url.path}: {e.message}")
            return JSONResponse({"error": e.message})
        except Exception as e:
            log_exception("Call API request failed", {"path": request.url.path})
            return JSONResponse({"error": str(e)})
        return JSONResponse({"data": json_or_text(result)})

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "contracts": registry.addresses()})

    async def get_metrics(request: Request) -> Response:
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    routes = [
        Route(f"{REST_BASE_PATH}/contract/{{address}}/{{entry_point}}/{{msg:path}}", call_contract, methods=["GET"]),
        Route("/health", health, methods=["GET"]),
        Route("/metrics", get_metrics, methods=["GET"]),
    ]
    middleware = [
        Middleware(
            cast(Any, CORSMiddleware),
            allow_origins=["*"],
            allow_methods=["POST", "GET", "OPTIONS"],
            allow_headers=["*"],
            allow_credentials=True,
        ),
    ]
    return Starlette(routes=routes, middleware=middleware)


def start_server(
    registry: ContractRegistry, port: int, host: str = DEFAULT_HOST
) -> tuple[uvicorn.Server, threading.Thread]:
    """Serve the call API on a daemon thread. Set ``server.should_exit`` to stop it."""
    config = uvicorn.Config(build_app(registry), host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="call-api", daemon=True)
    thread.start()
    logger.info(f"Call API listening on http://{host}:{port}{REST_BASE_PATH}")
    return server, thread
