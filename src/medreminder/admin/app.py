from __future__ import annotations

import asyncio
import datetime
import time
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse

import medreminder.storage.db_config as db_config
import medreminder.storage.user as user_storage
from medreminder import __version__
from medreminder.config import settings
from medreminder.datamodel import Reminder
from medreminder.errors import NotFoundError, PersistenceError
from medreminder.logger import error_log_path, logger
from medreminder.metrics import runtime_metrics
from medreminder.notifications.local import LocalNotificationBackend
from medreminder.storage.reminder import encode_reminder

from .auth import require_admin_auth
from .schemas import LoginRequest, ReminderPayload, RuntimeControl, ShutdownRequest
from .store import filter_logs, parse_log_lines, tail_lines


def create_app(control: RuntimeControl) -> FastAPI:
    app = FastAPI(title="MedReminder Admin API", version=__version__)
    coordinator = control.coordinator

    def reminder_payload(reminder: Reminder) -> dict[str, Any]:
        data: dict[str, Any] = encode_reminder(reminder)
        data["fireAt"] = coordinator.fire_at(reminder).isoformat()
        return data

    def health_payload() -> dict[str, Any]:
        return {
            "status": "ok",
            "now_utc": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "uptime_seconds": max(0.0, time.time() - control.started_at),
            "db_connected": db_config.conn is not None,
            "clock": control.clock.state,
            "shutdown_requested": control.shutdown_event.is_set(),
        }

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error(f"存储错误: {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=503, content={"detail": f"存储不可用: {exc}"})

    @app.get("/healthz", include_in_schema=False)
    async def healthz() -> PlainTextResponse:
        return PlainTextResponse("ok")

    @app.get("/api/v1/health")
    async def api_health() -> dict[str, Any]:
        return health_payload()

    @app.get("/api/v1/metrics")
    async def get_metrics(request: Request) -> dict[str, Any]:
        await require_admin_auth(request)
        backend_status: dict[str, Any] = {"type": type(control.backend).__name__}
        if isinstance(control.backend, LocalNotificationBackend):
            backend_status.update(control.backend.get_status())
        return {
            "runtime": runtime_metrics.snapshot(),
            "components": {
                "db": {"connected": db_config.conn is not None},
                "clock": control.clock.get_status(),
                "notifications": backend_status,
            },
            "active_tasks": len(asyncio.all_tasks()),
        }

    # ----------------- 提醒 ----------------
    @app.get("/api/v1/reminders")
    async def list_reminders(request: Request) -> dict[str, Any]:
        await require_admin_auth(request)
        reminders = await coordinator.list()
        reminders.sort(key=lambda r: (r.date, r.time))
        return {"items": [reminder_payload(r) for r in reminders], "total": len(reminders)}

    @app.post("/api/v1/reminders", status_code=201)
    async def add_reminder(payload: ReminderPayload, request: Request) -> dict[str, Any]:
        await require_admin_auth(request)
        reminder = await coordinator.add(payload.to_reminder())
        return reminder_payload(reminder)

    @app.get("/api/v1/reminders/{reminder_id}")
    async def get_reminder(reminder_id: str, request: Request) -> dict[str, Any]:
        await require_admin_auth(request)
        try:
            reminder = await coordinator.get(reminder_id)
        except NotFoundError:
            raise HTTPException(status_code=404, detail="提醒不存在")
        return reminder_payload(reminder)

    @app.put("/api/v1/reminders/{reminder_id}")
    async def update_reminder(reminder_id: str, payload: ReminderPayload, request: Request) -> dict[str, Any]:
        await require_admin_auth(request)
        updated = await coordinator.update(payload.to_reminder(reminder_id))
        return {"ok": True, "updated": updated, "id": reminder_id}

    @app.delete("/api/v1/reminders/{reminder_id}")
    async def delete_reminder(reminder_id: str, request: Request) -> dict[str, Any]:
        await require_admin_auth(request)
        deleted = await coordinator.delete(reminder_id)
        return {"ok": True, "deleted": deleted, "id": reminder_id}

    @app.post("/api/v1/reminders/{reminder_id}/test")
    async def test_reminder(reminder_id: str, request: Request) -> dict[str, Any]:
        await require_admin_auth(request)
        if not await coordinator.check_permissions(request=True):
            raise HTTPException(status_code=409, detail="通知权限未授予")
        try:
            notification_id = await coordinator.send_test_notification(reminder_id)
        except NotFoundError:
            raise HTTPException(status_code=404, detail="提醒不存在")
        return {"ok": True, "notification_id": notification_id}

    # ----------------- 通知 ----------------
    @app.get("/api/v1/notifications/recent")
    async def recent_notifications(request: Request, limit: int = 50) -> dict[str, Any]:
        await require_admin_auth(request)
        limit = max(1, min(limit, 500))
        items: list[dict[str, Any]] = []
        if isinstance(control.backend, LocalNotificationBackend):
            for n in list(control.backend.history)[-limit:][::-1]:
                items.append({
                    "notification_id": n.notification_id,
                    "title": n.title,
                    "body": n.body,
                    "delivered_at": n.delivered_at.isoformat(),
                    "scheduled": n.scheduled,
                })
        return {"items": items, "limit": limit}

    @app.get("/api/v1/notifications/permission")
    async def notification_permission(request: Request) -> dict[str, bool]:
        await require_admin_auth(request)
        return {"permitted": await coordinator.check_permissions()}

    # ----------------- 用户 ----------------
    @app.get("/api/v1/user")
    async def get_user(request: Request) -> dict[str, Any]:
        await require_admin_auth(request)
        user = await user_storage.get_current_user()
        if user is None:
            return {"username": None, "logged_in": False}
        return {"username": user.username, "logged_in": user.logged_in}

    @app.post("/api/v1/user")
    async def login(payload: LoginRequest, request: Request) -> dict[str, Any]:
        await require_admin_auth(request)
        user = await user_storage.login(payload.username)
        return {"username": user.username, "logged_in": user.logged_in}

    @app.delete("/api/v1/user")
    async def logout(request: Request) -> dict[str, bool]:
        await require_admin_auth(request)
        await user_storage.logout()
        return {"ok": True}

    # ----------------- 运维 ----------------
    @app.get("/api/v1/logs")
    async def get_logs(
        request: Request,
        lines: int = 200,
        levels: str | None = None,
        q: str | None = None,
        stream: str = "main",
        module: str | None = None,
        since: datetime.datetime | None = None,
    ) -> dict[str, Any]:
        await require_admin_auth(request)
        lines = max(1, min(lines, 5000))

        base_path = Path(settings.ADMIN_LOG_FILE)
        target_path = error_log_path(base_path) if stream == "error" else base_path

        level_list = [part.strip() for part in (levels or "").split(",") if part.strip()]
        records = filter_logs(
            parse_log_lines(tail_lines(target_path, lines)),
            levels=level_list,
            keyword=q,
            module=module,
            since=since,
        )
        return {
            "stream": stream,
            "levels": level_list,
            "q": q,
            "module": module,
            "file": str(target_path),
            "records": [record.to_dict() for record in records],
        }

    @app.post("/api/v1/admin/shutdown")
    async def admin_shutdown(payload: ShutdownRequest, request: Request) -> dict[str, Any]:
        auth_info = await require_admin_auth(request)
        logger.warning(f"收到远程关闭请求: by={auth_info['user']}, reason={payload.reason}")
        control.shutdown_event.set()
        return {"ok": True, "action": "shutdown", "reason": payload.reason}

    return app
