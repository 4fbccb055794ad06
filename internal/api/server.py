from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from internal.orchestrator import (
    BuildEvent,
    BuildRunInput,
    BuildRunManager,
    RunNotFound,
    RunStateError,
    TicketNotFound,
    ticket_from_dict,
)
from internal.sandbox import (
    SandboxError,
    SandboxFileNotFound,
    SandboxInfo,
    SandboxNotActive,
    SandboxNotRegistered,
    SandboxProvider,
    SandboxRegistry,
)
from internal.streaming import format_sse
from internal.util.json import error_response

logger = logging.getLogger(__name__)

KEEPALIVE = ": keep-alive\n\n"


class Server:
    def __init__(
        self,
        manager: BuildRunManager,
        auth_token: str = "",
        registry: Optional[SandboxRegistry] = None,
        base_url: str = "",
    ) -> None:
        self._manager = manager
        self._auth_token = auth_token
        self._registry = registry
        self._base_url = base_url.rstrip("/")
        self._app = FastAPI()
        self._configure_middleware()
        self._configure_routes()
        self._configure_sandbox_routes()

    def handler(self) -> FastAPI:
        return self._app

    def _configure_middleware(self) -> None:
        self._app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
        )

        @self._app.middleware("http")
        async def recover_middleware(request: Request, call_next):
            try:
                return await call_next(request)
            except Exception:
                logger.exception("unhandled error on %s %s", request.method, request.url.path)
                return error_response("internal error", 500)

        @self._app.middleware("http")
        async def auth_middleware(request: Request, call_next):
            if not self._auth_token.strip() or request.method == "OPTIONS":
                return await call_next(request)
            auth = request.headers.get("authorization") or ""
            prefix = "Bearer "
            if not auth.startswith(prefix) or auth[len(prefix) :].strip() != self._auth_token:
                return error_response("unauthorized", 401)
            return await call_next(request)

        @self._app.middleware("http")
        async def logging_middleware(request: Request, call_next):
            start = time.time()
            response = await call_next(request)
            duration = int((time.time() - start) * 1000)
            logger.info(
                "%s %s -> %d (%d ms)", request.method, request.url.path, response.status_code, duration
            )
            return response

    def _configure_routes(self) -> None:
        @self._app.get("/healthz")
        async def healthz():
            return {"ok": True}

        @self._app.get("/v1/build-runs")
        async def list_runs():
            return {"success": True, "runs": [run.to_summary_dict() for run in self._manager.list_runs()]}

        @self._app.post("/v1/build-runs")
        async def start_run(request: Request):
            try:
                body = await _parse_json(request)
            except ValueError:
                return error_response("invalid json", 400)
            try:
                run_input = _build_run_input(body)
            except ValueError as err:
                return error_response(str(err), 400)
            base_url = self._base_url or str(request.base_url).rstrip("/")
            run = self._manager.create_run(run_input, base_url)
            self._manager.start(run.run_id)
            return {"success": True, "runId": run.run_id}

        @self._app.get("/v1/build-runs/{run_id}")
        async def get_run(run_id: str):
            try:
                run = self._manager.get_run(run_id)
            except Exception as err:
                return _error_for(err)
            return {"success": True, "run": run.to_status_dict()}

        @self._app.get("/v1/build-runs/{run_id}/events")
        async def run_events(request: Request, run_id: str):
            try:
                history = self._manager.list_events(run_id)
            except Exception as err:
                return _error_for(err)
            if request.query_params.get("format") == "json":
                return {"success": True, "events": [ev.to_dict() for ev in history]}

            async def stream():
                queue: asyncio.Queue[Optional[BuildEvent]] = asyncio.Queue()
                loop = asyncio.get_running_loop()

                def handler(ev: BuildEvent) -> None:
                    loop.call_soon_threadsafe(queue.put_nowait, ev)

                replay, unsubscribe = self._manager.subscribe_with_history(run_id, handler)
                keepalive = asyncio.create_task(_keepalive(queue))
                try:
                    for ev in replay:
                        yield format_sse(ev.to_dict())
                        if _ends_run(ev):
                            return
                    while True:
                        if await request.is_disconnected():
                            break
                        ev = await queue.get()
                        if ev is None:
                            yield KEEPALIVE
                            continue
                        yield format_sse(ev.to_dict())
                        if _ends_run(ev):
                            break
                finally:
                    unsubscribe()
                    keepalive.cancel()

            return StreamingResponse(
                stream(),
                media_type="text/event-stream",
                headers={"Cache-Control": "no-cache, no-transform", "Connection": "keep-alive"},
            )

        @self._app.post("/v1/build-runs/{run_id}/pause")
        async def pause_run(run_id: str):
            return self._control(run_id, self._manager.pause)

        @self._app.post("/v1/build-runs/{run_id}/resume")
        async def resume_run(run_id: str):
            return self._control(run_id, self._manager.resume)

        @self._app.post("/v1/build-runs/{run_id}/cancel")
        async def cancel_run(run_id: str):
            return self._control(run_id, self._manager.cancel)

        @self._app.post("/v1/build-runs/{run_id}/tickets/{ticket_id}/retry")
        async def retry_ticket(run_id: str, ticket_id: str):
            try:
                retried = self._manager.retry_ticket(run_id, ticket_id)
                self._manager.start(retried.run_id)
            except Exception as err:
                return _error_for(err)
            return {"success": True, "runId": retried.run_id, "retryOf": run_id}

    def _control(self, run_id: str, action) -> object:
        try:
            action(run_id)
            run = self._manager.get_run(run_id)
        except Exception as err:
            return _error_for(err)
        return {"success": True, "status": run.status, "paused": run.paused}

    def _configure_sandbox_routes(self) -> None:
        @self._app.get("/v1/sandboxes")
        async def list_sandboxes():
            try:
                infos = self._require_registry().list()
            except Exception as err:
                return _error_for(err)
            return {"success": True, "sandboxes": [_sandbox_dict(info) for info in infos]}

        @self._app.post("/v1/sandboxes")
        async def create_sandbox(request: Request):
            try:
                body = await _parse_json(request, allow_empty=True)
            except ValueError:
                return error_response("invalid json", 400)
            try:
                registry = self._require_registry()
                info = await run_in_threadpool(registry.create, body.get("provider") or None)
            except Exception as err:
                return _error_for(err)
            logger.info("sandbox %s created (%s)", info.sandbox_id, info.provider)
            return {"success": True, "sandbox": _sandbox_dict(info)}

        @self._app.get("/v1/sandboxes/{sandbox_id}/health")
        async def sandbox_health(sandbox_id: str):
            try:
                provider = await self._provider(sandbox_id)
                health = await run_in_threadpool(provider.check_health)
            except Exception as err:
                return _error_for(err)
            return {"success": True, "healthy": health.healthy, "error": health.error}

        @self._app.post("/v1/sandboxes/{sandbox_id}/commands")
        async def run_sandbox_command(request: Request, sandbox_id: str):
            try:
                body = await _parse_json(request)
            except ValueError:
                return error_response("invalid json", 400)
            command = str(body.get("command") or "").strip()
            if not command:
                return error_response("Command is required", 400)
            try:
                provider = await self._provider(sandbox_id)
                result = await run_in_threadpool(provider.run_command, command)
            except Exception as err:
                return _error_for(err)
            return {
                "success": result.success,
                "output": result.stdout,
                "error": result.stderr,
                "exitCode": result.exit_code,
                "message": "Command executed successfully" if result.success else "Command failed",
            }

        @self._app.post("/v1/sandboxes/{sandbox_id}/packages")
        async def install_sandbox_packages(request: Request, sandbox_id: str):
            try:
                body = await _parse_json(request)
            except ValueError:
                return error_response("invalid json", 400)
            packages = body.get("packages")
            if not isinstance(packages, list) or not packages:
                return error_response("Packages array is required", 400)
            try:
                provider = await self._provider(sandbox_id)
                result = await run_in_threadpool(provider.install_packages, [str(p) for p in packages])
            except Exception as err:
                return _error_for(err)
            return {
                "success": result.success,
                "output": result.stdout,
                "error": result.stderr,
                "message": "Packages installed successfully" if result.success else "Package installation failed",
            }

        @self._app.get("/v1/sandboxes/{sandbox_id}/files")
        async def list_sandbox_files(request: Request, sandbox_id: str):
            directory = request.query_params.get("dir") or None
            try:
                provider = await self._provider(sandbox_id)
                files = await run_in_threadpool(provider.list_files, directory)
            except Exception as err:
                return _error_for(err)
            return {"success": True, "files": files}

        @self._app.get("/v1/sandboxes/{sandbox_id}/file")
        async def read_sandbox_file(request: Request, sandbox_id: str):
            path = (request.query_params.get("path") or "").strip()
            if not path:
                return error_response("path required", 400)
            try:
                provider = await self._provider(sandbox_id)
                content = await run_in_threadpool(provider.read_file, path)
            except Exception as err:
                return _error_for(err)
            return {"success": True, "path": path, "content": content}

        @self._app.put("/v1/sandboxes/{sandbox_id}/file")
        async def write_sandbox_file(request: Request, sandbox_id: str):
            try:
                body = await _parse_json(request)
            except ValueError:
                return error_response("invalid json", 400)
            path = str(body.get("path") or "").strip()
            content = body.get("content")
            if not path or not isinstance(content, str):
                return error_response("path and content required", 400)
            try:
                provider = await self._provider(sandbox_id)
                await run_in_threadpool(provider.write_file, path, content)
            except Exception as err:
                return _error_for(err)
            return {"success": True, "path": path}

        @self._app.post("/v1/sandboxes/{sandbox_id}/restart")
        async def restart_sandbox_dev_server(sandbox_id: str):
            try:
                provider = await self._provider(sandbox_id)
                await run_in_threadpool(provider.restart_dev_server)
            except Exception as err:
                return _error_for(err)
            return {"success": True, "message": "Dev server restarted successfully"}

        @self._app.delete("/v1/sandboxes/{sandbox_id}")
        async def terminate_sandbox(sandbox_id: str):
            try:
                await run_in_threadpool(self._require_registry().terminate, sandbox_id)
            except Exception as err:
                return _error_for(err)
            logger.info("sandbox %s terminated", sandbox_id)
            return {"success": True}

    async def _provider(self, sandbox_id: str) -> SandboxProvider:
        return await run_in_threadpool(self._require_registry().get, sandbox_id)

    def _require_registry(self) -> SandboxRegistry:
        if self._registry is None:
            raise SandboxError("sandbox management is disabled")
        return self._registry


def _build_run_input(body: dict) -> BuildRunInput:
    sandbox_id = str(body.get("sandboxId") or "").strip()
    model = str(body.get("model") or "").strip()
    plan = body.get("plan")
    tickets = body.get("tickets")
    if not sandbox_id:
        raise ValueError("sandboxId is required")
    if not model:
        raise ValueError("model is required")
    if not isinstance(plan, dict):
        raise ValueError("plan is required")
    if not isinstance(tickets, list):
        raise ValueError("tickets must be an array")
    only = body.get("onlyTicketId")
    return BuildRunInput(
        tickets=[ticket_from_dict(t) for t in tickets],
        sandbox_id=sandbox_id,
        model=model,
        plan=plan,
        ui_style=body.get("uiStyle"),
        only_ticket_id=only if isinstance(only, str) and only else None,
    )


def _ends_run(ev: BuildEvent) -> bool:
    # failed runs end on run_status; completed and cancelled ones on run_completed
    return ev.type == "run_completed" or (ev.type == "run_status" and ev.status == "failed")


def _sandbox_dict(info: SandboxInfo) -> dict:
    return {
        "sandboxId": info.sandbox_id,
        "url": info.url,
        "provider": info.provider,
        "createdAt": info.created_at,
        "devPort": info.dev_port,
    }


def _error_for(err: Exception):
    if isinstance(err, (RunNotFound, TicketNotFound, SandboxNotRegistered, SandboxFileNotFound)):
        return error_response(str(err), 404)
    if isinstance(err, (RunStateError, SandboxNotActive)):
        return error_response(str(err), 409)
    if isinstance(err, ValueError):
        return error_response(str(err), 400)
    logger.error("request failed: %s", err)
    return error_response(str(err) or err.__class__.__name__, 500)


async def _keepalive(queue: asyncio.Queue) -> None:
    while True:
        await asyncio.sleep(15)
        queue.put_nowait(None)


async def _parse_json(request: Request, allow_empty: bool = False) -> dict:
    body = await request.body()
    if allow_empty and not body.strip():
        return {}
    try:
        data = json.loads(body)
    except Exception as err:
        raise ValueError("invalid json") from err
    if not isinstance(data, dict):
        raise ValueError("invalid json")
    return data
