import logging
import sys
import json
import re
from typing import Any, Dict, Optional
from logging.handlers import QueueHandler, QueueListener
from queue import Queue
from vexa.config.settings import Settings, config_settings
from vexa.common.constants import request_id_ctx

SENSITIVE_PATTERNS = [
    r"password", r"secret", r"token", r"authorization",
    r"api_key", r"apikey", r"access_token", r"refresh_token",
    r"credit_card", r"cvv", r"client_secret",
]

# attributes every LogRecord carries; anything else came in through `extra`
_RECORD_ATTRS = {
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread", "threadName", "processName",
    "process", "taskName", "message", "asctime",
}


def sanitize_message_text(msg: str) -> str:
    """Sanitize sensitive patterns inside a text message (best-effort)."""
    out = msg
    for p in SENSITIVE_PATTERNS:
        # replace occurrences like "password=abc" or '"password": "abc"'
        out = re.sub(rf'("{p}"\s*:\s*")[^"]+(")', rf'\1[REDACTED]\2', out, flags=re.IGNORECASE)
        out = re.sub(rf'({p}\s*[=:\s]\s*)[\w\-\./]+', rf'\1[REDACTED]', out, flags=re.IGNORECASE)
    return out


class JSONFormatter(logging.Formatter):
    """Structured JSON formatter for staging/prod"""

    def __init__(self, env: str, service: str):
        super().__init__()
        self.env = env
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": sanitize_message_text(record.getMessage()),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "env": self.env,
            "service": self.service,
        }

        rid = request_id_ctx.get()
        if rid:
            log_data["request_id"] = rid

        for k, v in record.__dict__.items():
            if k in _RECORD_ATTRS or k.startswith("_"):
                continue
            log_data[k] = v

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class SecurityFilter(logging.Filter):
    """Redact sensitive info in non-dev logs"""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            record.msg = sanitize_message_text(record.getMessage())
            record.args = ()
        except (TypeError, ValueError):
            pass
        return True


# Non-blocking queue-based logging. Set up once at app startup.
_queue_listener: Optional[QueueListener] = None


def setup_logging(settings: Optional[Settings] = None):

    global _queue_listener
    settings = settings or config_settings
    env = settings.ENV.lower()

    log_level = logging.INFO if env in ("prod", "staging") else logging.DEBUG

    root = logging.getLogger()
    # Clear existing handlers to avoid duplication
    for h in list(root.handlers):
        root.removeHandler(h)
    if _queue_listener is not None:
        _queue_listener.stop()

    q: Queue = Queue(-1)
    qh = QueueHandler(q)

    console_handler = logging.StreamHandler(sys.stdout)
    if env != "dev":
        console_handler.setFormatter(JSONFormatter(env, settings.SERVICE_NAME))
        console_handler.addFilter(SecurityFilter())
    else:
        console_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)8s] %(name)s:%(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))

    root.setLevel(log_level)
    root.addHandler(qh)

    _queue_listener = QueueListener(q, console_handler, respect_handler_level=True)
    _queue_listener.start()

    # silence noisy third-party loggers outside dev
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING if env != "dev" else logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return logging.getLogger("vexa.app")


def shutdown_logging():
    global _queue_listener
    if _queue_listener is not None:
        _queue_listener.stop()
        _queue_listener = None


class ContextLogger:
    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _with_ctx(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        extra = dict(kwargs.pop("extra", None) or {})
        rid = request_id_ctx.get()
        if rid:
            extra.setdefault("request_id", rid)
        kwargs["extra"] = extra
        return kwargs

    def debug(self, msg: str, *args, **kwargs):
        self._logger.debug(msg, *args, **self._with_ctx(kwargs))

    def info(self, msg: str, *args, **kwargs):
        self._logger.info(msg, *args, **self._with_ctx(kwargs))

    def warning(self, msg: str, *args, **kwargs):
        self._logger.warning(msg, *args, **self._with_ctx(kwargs))

    def error(self, msg: str, *args, **kwargs):
        self._logger.error(msg, *args, **self._with_ctx(kwargs))

    def exception(self, msg: str, *args, **kwargs):
        self._logger.exception(msg, *args, **self._with_ctx(kwargs))


def get_logger(name: str = "vexa.app") -> ContextLogger:
    return ContextLogger(name)
