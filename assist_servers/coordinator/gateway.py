"""Local WebSocket gateway that execution contexts connect to.

One WebSocket per client. Pages say `hello` with a `contextId` and become
addressable for fan-out and may open streaming connections; other clients (the
web app) say `hello` without one and send one-shot messages and account frames.

Frames (JSON text):
- hello / helloAck
- message {id, message} -> response {id, response}
- connect {name} / portMessage {name, message} / disconnect {name}
- navigate {url}
- login {id, userId, token} / logout {id} / clearUserData {id} -> response {id, response}
  (app clients only; they set or clear the active user)
- ping -> pong
Server pushes: contextMessage {message} (fan-out), portMessage {name, message}.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any

from . import __version__
from .config import CoordinatorConfig
from .connections import Connection
from .context import CoordinatorContext
from .server.router import MessageRouter
from .server.types import HandlerResult, Sender
from .store import StoreError

COORDINATOR_PROTOCOL_VERSION = "2026-10-01"
COORDINATOR_WELL_KNOWN_PATH = "/.well-known/assist-coordinator"

_LOGGER = logging.getLogger("assist.coordinator.gateway")

_ACCOUNT_FRAMES = frozenset({"login", "logout", "clearUserData"})


def _now_ms() -> int:
    return int(time.time() * 1000)


def _import_websockets():
    try:
        import websockets  # type: ignore[import-not-found]

        return websockets
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError(
            "The coordinator gateway requires the 'websockets' Python package. Install it (pip install websockets)."
        ) from exc


@dataclass(eq=False)
class _ClientSession:
    session_id: str
    ws: Any
    role: str
    context_id: str | None = None
    url: str | None = None
    connected_at_ms: int = field(default_factory=_now_ms)
    write_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    ports: dict[str, Connection] = field(default_factory=dict)

    async def send_frame(self, payload: dict[str, Any]) -> None:
        async with self.write_lock:
            await self.ws.send(json.dumps(payload, ensure_ascii=False))

    async def deliver(self, message: dict[str, Any]) -> None:
        await self.send_frame({"type": "contextMessage", "message": message})

    def port_sender(self, name: str):  # type: ignore[no-untyped-def]
        async def _send(message: dict[str, Any]) -> None:
            await self.send_frame({"type": "portMessage", "name": name, "message": message})

        return _send

    @property
    def sender(self) -> Sender:
        return Sender(context_id=self.context_id, url=self.url)


class ContextGateway:
    """WebSocket front door for the coordinator.

    Design goals:
    - Never crash on client input: malformed frames are dropped.
    - One-shot messages run concurrently; port messages keep per-connection order.
    - Client disconnect closes its connections and removes it from fan-out.
    """

    def __init__(
        self,
        ctx: CoordinatorContext,
        router: MessageRouter,
        *,
        host: str | None = None,
        port: int | None = None,
        max_message_bytes: int = 2_000_000,
    ) -> None:
        self.ctx = ctx
        self.router = router
        self.host = (host or "127.0.0.1").strip() or "127.0.0.1"
        self.port = 0 if port is None else int(port)
        self.max_message_bytes = int(max_message_bytes)
        self._started_at_ms = _now_ms()

        # NOTE: typed as Any to avoid coupling to a websockets server class across versions.
        self._server: Any | None = None
        self._sessions: dict[str, _ClientSession] = {}
        self._reply_tasks: set[asyncio.Task] = set()
        self._next_session = 1

    @classmethod
    def from_config(cls, ctx: CoordinatorContext, router: MessageRouter, config: CoordinatorConfig) -> ContextGateway:
        return cls(ctx, router, host=config.host, port=config.port, max_message_bytes=config.max_message_bytes)

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    async def start(self) -> None:
        if self._server is not None:
            return
        websockets = _import_websockets()
        server = await websockets.serve(
            self._handler,
            self.host,
            self.port,
            process_request=self._process_request,
            max_size=self.max_message_bytes,
            ping_interval=None,
        )
        self._server = server
        with contextlib.suppress(Exception):
            sockets = list(server.sockets or [])
            if sockets:
                self.port = int(sockets[0].getsockname()[1])
        _LOGGER.info("gateway listening on %s:%s", self.host, self.port)

    async def serve_forever(self) -> None:
        await self.start()
        server = self._server
        if server is not None:
            await server.wait_closed()

    async def stop(self) -> None:
        srv = self._server
        self._server = None
        if srv is not None:
            srv.close()
            with contextlib.suppress(Exception):
                await srv.wait_closed()
        if self._reply_tasks:
            await asyncio.gather(*list(self._reply_tasks), return_exceptions=True)

    def status(self) -> dict[str, Any]:
        sessions = list(self._sessions.values())
        return {
            "listening": self._server is not None,
            "host": self.host,
            "port": self.port,
            "protocolVersion": COORDINATOR_PROTOCOL_VERSION,
            "serverVersion": __version__,
            "serverStartedAtMs": self._started_at_ms,
            "clients": len(sessions),
            "pages": sum(1 for s in sessions if s.context_id),
            **self.ctx.status(),
        }

    # ─────────────────────────────────────────────────────────────────────────
    # HTTP discovery
    # ─────────────────────────────────────────────────────────────────────────

    def _http_response(self, status: int, reason: str, content_type: str, body: bytes):  # type: ignore[no-untyped-def]
        from websockets.datastructures import Headers as WsHeaders  # type: ignore[import-not-found]
        from websockets.http11 import Response as WsResponse  # type: ignore[import-not-found]

        headers = WsHeaders()
        headers["Content-Type"] = content_type
        headers["Cache-Control"] = "no-store"
        headers["Content-Length"] = str(len(body))
        return WsResponse(status, reason, headers, body)

    async def _process_request(self, _conn, request):  # type: ignore[no-untyped-def]
        try:
            try:
                upgrade = str(request.headers.get("Upgrade") or "").lower()
            except Exception:
                upgrade = ""
            if upgrade == "websocket":
                return None

            path = str(getattr(request, "path", "") or "")
            if path == COORDINATOR_WELL_KNOWN_PATH:
                payload = {"type": "assistCoordinator", "pid": int(os.getpid()), **self.status()}
                body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str).encode("utf-8")
                return self._http_response(200, "OK", "application/json", body)
            return self._http_response(404, "Not Found", "text/plain", b"not found")
        except Exception:
            # Fail-open: a broken status page must not wedge WS handshakes.
            return None

    # ─────────────────────────────────────────────────────────────────────────
    # WebSocket clients
    # ─────────────────────────────────────────────────────────────────────────

    async def _handler(self, ws) -> None:  # type: ignore[no-untyped-def]
        try:
            raw = await asyncio.wait_for(ws.recv(), timeout=5.0)
            hello = json.loads(raw)
        except Exception:
            _LOGGER.debug("client hello missing or malformed")
            with contextlib.suppress(Exception):
                await ws.close(code=1002, reason="expected hello")
            return

        if not isinstance(hello, dict) or hello.get("type") != "hello":
            with contextlib.suppress(Exception):
                await ws.close(code=1002, reason="expected hello")
            return

        session = self._open_session(ws, hello)
        try:
            await session.send_frame(
                {
                    "type": "helloAck",
                    "protocolVersion": COORDINATOR_PROTOCOL_VERSION,
                    "sessionId": session.session_id,
                    "serverVersion": __version__,
                    "serverStartedAtMs": self._started_at_ms,
                    **({"contextId": session.context_id} if session.context_id else {}),
                }
            )
            async for raw_msg in ws:
                try:
                    msg = json.loads(raw_msg)
                except Exception:
                    continue
                if isinstance(msg, dict):
                    await self._on_frame(session, msg)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.debug("client session ended session=%s: %s", session.session_id, exc)
        finally:
            self._close_session(session)

    def _open_session(self, ws, hello: dict[str, Any]) -> _ClientSession:  # type: ignore[no-untyped-def]
        raw_context = hello.get("contextId")
        context_id = str(raw_context).strip() if isinstance(raw_context, (str, int)) else ""
        role = str(hello.get("role") or ("page" if context_id else "app")).strip().lower()
        url = hello.get("url") if isinstance(hello.get("url"), str) else None

        session_id = f"ctx-{self._next_session}-{os.getpid()}"
        self._next_session += 1
        session = _ClientSession(
            session_id=session_id,
            ws=ws,
            role=role,
            context_id=context_id if (context_id and role == "page") else None,
            url=url,
        )
        self._sessions[session_id] = session
        if session.context_id:
            self.ctx.directory.register(session.context_id, session.deliver, url=url)
        _LOGGER.info("client connected session=%s role=%s context=%s", session_id, role, session.context_id)
        return session

    def _close_session(self, session: _ClientSession) -> None:
        self._sessions.pop(session.session_id, None)
        for conn in list(session.ports.values()):
            self.ctx.connections.close(conn)
        session.ports.clear()
        if session.context_id:
            self.ctx.directory.unregister(session.context_id, send=session.deliver)
        _LOGGER.info("client disconnected session=%s", session.session_id)

    async def _on_frame(self, session: _ClientSession, msg: dict[str, Any]) -> None:
        ftype = msg.get("type")

        if ftype == "message":
            await self._on_one_shot(session, msg)
            return

        if ftype == "connect":
            name = str(msg.get("name") or "").strip()
            if not name or not session.context_id:
                # Only pages hold streaming connections.
                return
            previous = session.ports.pop(name, None)
            if previous is not None:
                self.ctx.connections.close(previous)
            conn = self.ctx.connections.open(
                name, session.port_sender(name), context_id=session.context_id, url=session.url
            )
            session.ports[name] = conn
            return

        if ftype == "portMessage":
            conn = session.ports.get(str(msg.get("name") or "").strip())
            message = msg.get("message")
            if conn is None or not isinstance(message, dict):
                return
            self.ctx.connections.receive(conn, message)
            return

        if ftype == "disconnect":
            conn = session.ports.pop(str(msg.get("name") or "").strip(), None)
            if conn is not None:
                self.ctx.connections.close(conn)
            return

        if ftype == "navigate":
            url = msg.get("url") if isinstance(msg.get("url"), str) else None
            session.url = url
            if session.context_id:
                self.ctx.directory.update_url(session.context_id, url)
            return

        if ftype in _ACCOUNT_FRAMES:
            await self._on_account(session, ftype, msg)
            return

        if ftype == "ping":
            with contextlib.suppress(Exception):
                await session.send_frame({"type": "pong", "ts": _now_ms()})
            return

    async def _on_one_shot(self, session: _ClientSession, msg: dict[str, Any]) -> None:
        req_id = msg.get("id")
        reply = self.router.route(msg.get("message"), session.sender)
        if not reply.pending:
            with contextlib.suppress(Exception):
                await session.send_frame({"type": "response", "id": req_id, "response": reply.response})
            return

        async def _respond() -> None:
            response = await reply.wait()
            with contextlib.suppress(Exception):
                await session.send_frame({"type": "response", "id": req_id, "response": response})

        task = asyncio.create_task(_respond())
        self._reply_tasks.add(task)
        task.add_done_callback(self._reply_tasks.discard)

    async def _on_account(self, session: _ClientSession, ftype: str, msg: dict[str, Any]) -> None:
        """login {userId, token} / logout / clearUserData from the web app; answered as `response`."""
        if session.context_id:
            result = HandlerResult.fail("Account frames are not accepted from page contexts")
        else:
            try:
                result = await self._apply_account(ftype, msg)
            except StoreError as exc:
                _LOGGER.error("Error handling %s: %s", ftype, exc)
                result = HandlerResult.fail(str(exc))
        with contextlib.suppress(Exception):
            await session.send_frame({"type": "response", "id": msg.get("id"), "response": result.to_envelope()})

    async def _apply_account(self, ftype: str, msg: dict[str, Any]) -> HandlerResult:
        if ftype == "login":
            user_id = msg.get("userId")
            token = msg.get("token")
            if not isinstance(user_id, str) or not user_id.strip() or not isinstance(token, str) or not token:
                return HandlerResult.fail("Missing user ID or token")
            await self.ctx.login(user_id.strip(), token)
        elif ftype == "logout":
            await self.ctx.logout()
        else:
            await self.ctx.clear_user_data()
        _LOGGER.info("account %s active_user=%s", ftype, self.ctx.active_user)
        return HandlerResult.ok({"activeUser": self.ctx.active_user})


__all__ = ["COORDINATOR_PROTOCOL_VERSION", "COORDINATOR_WELL_KNOWN_PATH", "ContextGateway"]
