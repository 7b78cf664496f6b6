import contextvars
from typing import Optional

API_VERSION = "v1"
version_prefix = f"/api/{API_VERSION}"

SESSION_ID_HEADER = "X-Session-Id"

# Context variables for request and trace id
request_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)
