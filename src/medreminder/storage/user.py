"""单用户显示名，仅用于界面问候，不做鉴权"""

from types import ModuleType

import medreminder.storage.kv as kv_storage
from medreminder.datamodel import UserInfo
from medreminder.logger import logger

__all__ = ["login", "is_logged_in", "get_current_user", "logout"]

_USERNAME_KEY = "username"
_IS_LOGGED_IN_KEY = "isLoggedIn"


async def login(username: str, kv: ModuleType = kv_storage) -> UserInfo:
    """保存用户名并标记为已登录"""
    username = username.strip()
    if not username:
        raise ValueError("用户名不能为空")
    await kv.set_value(_USERNAME_KEY, username)
    await kv.set_value(_IS_LOGGED_IN_KEY, "true")
    logger.info(f"用户登录: {username}")
    return UserInfo(username=username, logged_in=True)


async def is_logged_in(kv: ModuleType = kv_storage) -> bool:
    return (await kv.get_value(_IS_LOGGED_IN_KEY)) == "true"


async def get_current_user(kv: ModuleType = kv_storage) -> UserInfo | None:
    """返回保存的用户，从未登录过则返回 None"""
    username = await kv.get_value(_USERNAME_KEY)
    if username is None:
        return None
    return UserInfo(username=username, logged_in=await is_logged_in(kv))


async def logout(kv: ModuleType = kv_storage) -> None:
    """仅清除登录标记，保留用户名"""
    await kv.set_value(_IS_LOGGED_IN_KEY, "false")
    logger.info("用户已登出")
