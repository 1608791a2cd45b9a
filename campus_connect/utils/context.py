from contextvars import ContextVar
from typing import Optional

request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_context: ContextVar[Optional[int]] = ContextVar("user_id", default=None)


def get_request_id() -> Optional[str]:
    return request_id_context.get()


def set_request_id(request_id: str) -> None:
    request_id_context.set(request_id)


def get_user_id() -> Optional[int]:
    """Authenticated user of the current request, if any."""
    return user_id_context.get()


def set_user_id(user_id: Optional[int]) -> None:
    user_id_context.set(user_id)


def log_context() -> dict:
    """Fields bound onto every log record for the current request."""
    user_id = get_user_id()
    return {
        "request_id": get_request_id() or "app",
        "user_id": str(user_id) if user_id is not None else "-",
    }
