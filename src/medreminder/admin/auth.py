from __future__ import annotations

import hmac

from fastapi import HTTPException, Request

from medreminder.config import settings
from medreminder.logger import logger

TOKEN_HEADER = "X-MedReminder-Token"


def extract_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip()
    token_header = request.headers.get(TOKEN_HEADER, "").strip()
    return token_header or None


async def require_admin_auth(request: Request) -> dict[str, str]:
    if not settings.ADMIN_AUTH_TOKEN:
        raise HTTPException(status_code=503, detail="ADMIN_AUTH_TOKEN 未配置")

    token = extract_token(request)
    if token and hmac.compare_digest(token, settings.ADMIN_AUTH_TOKEN):
        return {"auth": "token", "user": "admin-token"}

    client = request.client.host if request.client else "-"
    logger.warning(f"管理 API 认证失败: {request.method} {request.url.path} from {client}")
    raise HTTPException(status_code=401, detail="未授权")
