import contextvars
from typing import Optional

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100

# Context variable for request id, set by RequestIdMiddleware
request_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)
