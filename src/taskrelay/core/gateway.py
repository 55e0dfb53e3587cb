from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import os
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from taskrelay.core.c32 import C32Error, convert_address
from taskrelay.core.config import Settings
from taskrelay.core.identity import AgentIdentity
from taskrelay.core.logging_config import setup_logging
from taskrelay.core.relay import Relay
from taskrelay.core.scheduler import SleepFn
from taskrelay.core.wallets import list_wallet_filenames, load_agent_wallets, read_wallets
from taskrelay.integrations.marketplace import MarketplaceClient

logger = logging.getLogger("taskrelay.gateway")


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=400)


async def _json_body(request: Request) -> Optional[dict[str, Any]]:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def create_app(
    settings: Optional[Settings] = None,
    client: Optional[MarketplaceClient] = None,
    sleep: Optional[SleepFn] = None,
) -> FastAPI:
    if settings is None:
        # Ensure .env is loaded before anything reads os.getenv
        load_dotenv(override=False)
        settings = Settings.from_env()
        setup_logging(
            log_dir=settings.log_dir,
            log_level=settings.log_level,
            clear_on_launch=settings.clear_logs_on_launch,
        )

    if client is None:
        client = MarketplaceClient(api_base=settings.api_base, timeout=settings.http_timeout)

    identity = AgentIdentity.from_wallets(load_agent_wallets(settings.wallets_dir))
    relay = Relay(settings, client, identity=identity, sleep=sleep)

    # ---- lifespan ----

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        logger.info("Relay server on http://%s:%s", settings.host, settings.port)
        await relay.start()
        yield
        relay.stop()

    app = FastAPI(title="taskrelay", version="0.1.0", lifespan=lifespan)
    app.state.relay = relay

    # ---- core routes ----

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/control/status")
    def control_status() -> dict:
        return relay.status()

    # ---- wallets ----

    @app.get("/api/wallet-files")
    def wallet_files() -> dict:
        files = list_wallet_filenames(settings.wallets_dir)
        wallets = [w.to_dict() for w in read_wallets(settings.wallets_dir)]
        return {"files": files, "wallets": wallets}

    @app.get("/api/convert-address", response_model=None)
    def convert(address: Optional[str] = None, network: Optional[str] = None) -> dict | JSONResponse:
        if not address or not network:
            return _bad_request("address and network required")
        try:
            return {"address": convert_address(address, network)}
        except C32Error as exc:
            return _bad_request(str(exc))

    @app.get("/api/env-keys")
    def env_keys() -> dict[str, str]:
        return {
            "anthropic": settings.anthropic_api_key,
            "openai": settings.openai_api_key,
            "openrouter": settings.openrouter_api_key,
        }

    # ---- event injection ----

    @app.post("/api/push-task", response_model=None)
    async def push_task(request: Request) -> dict | JSONResponse:
        body = await _json_body(request)
        if body is None:
            return _bad_request("JSON object body required")
        tasks = body.get("tasks") if isinstance(body.get("tasks"), list) else [body]
        clients = relay.hub.client_count()
        await relay.push_tasks(tasks)
        return {"pushed": len(tasks), "clients": clients}

    @app.post("/api/payment-tx", response_model=None)
    async def store_payment_tx(request: Request) -> dict | JSONResponse:
        body = await _json_body(request) or {}
        task_id = body.get("taskId")
        tx_id = body.get("txId")
        if not task_id or not tx_id:
            return _bad_request("taskId and txId required")
        await relay.record_payment(str(task_id), str(tx_id))
        return {"stored": True}

    @app.get("/api/payment-tx/{task_id}")
    def get_payment_tx(task_id: str) -> dict[str, Optional[str]]:
        return {"txId": relay.payment_for(task_id)}

    @app.post("/api/watch-task", response_model=None)
    async def watch_task(request: Request) -> dict | JSONResponse:
        body = await _json_body(request) or {}
        task_id = body.get("taskId")
        if not task_id:
            return _bad_request("taskId required")
        return {"tracking": relay.watch(str(task_id), body.get("status"))}

    @app.post("/api/trigger-poll")
    async def trigger_poll() -> dict[str, int]:
        clients = relay.hub.client_count()
        await relay.trigger_poll()
        return {"clients": clients}

    @app.post("/api/reload")
    async def reload_clients() -> dict[str, int]:
        clients = relay.hub.client_count()
        await relay.reload_clients()
        return {"clients": clients}

    @app.get("/api/browser-state")
    async def browser_state() -> dict:
        return await relay.query_state()

    # ---- push channel ----

    async def push_channel(websocket: WebSocket) -> None:
        await websocket.accept()
        relay.hub.add(websocket)
        logger.info("Client connected (%d open)", relay.hub.client_count())
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None and message.get("bytes") is not None:
                    raw = message["bytes"].decode("utf-8", errors="replace")
                if raw is not None:
                    relay.handle_client_message(raw)
        except WebSocketDisconnect:
            pass
        finally:
            relay.hub.discard(websocket)
            logger.info("Client disconnected")

    app.add_api_websocket_route("/ws", push_channel)
    app.add_api_websocket_route("/", push_channel)

    # ---- static client ----

    if settings.static_dir and os.path.isdir(settings.static_dir):

        @app.middleware("http")
        async def no_cache_html(request: Request, call_next):  # noqa: ANN001
            response = await call_next(request)
            if request.url.path == "/" or request.url.path.endswith(".html"):
                response.headers["Cache-Control"] = "no-store"
            return response

        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app
