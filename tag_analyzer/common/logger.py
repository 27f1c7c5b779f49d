import os
import time
import logging
import functools
import traceback
import structlog
import orjson
import psutil
from typing import Callable, Any

from tag_analyzer.common.config import settings


def orjson_dumps(obj, **kwargs) -> str:
    return orjson.dumps(obj, **kwargs).decode()


def configure_logging(level: str = settings.log_level) -> None:
    """Configures structlog to emit orjson-rendered wide events at `level`."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(serializer=orjson_dumps),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.WARNING)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
    )


configure_logging()

logger = structlog.get_logger()


def get_memory_usage_mb() -> float:
    """Resident set size of this process in MB (psutil)."""
    return round(psutil.Process(os.getpid()).memory_info().rss / 2**20, 2)


def elapsed_ms(t0: float) -> float:
    return round((time.perf_counter() - t0) * 1000, 4)


class WideEventContext:
    """
    State of one analyzer call: where it started, which steps it went
    through, what it measured and which recoverable problems it hit.
    `to_event` turns it into the single wide event logged for the call.
    """

    def __init__(self, function: str):
        self.function = function
        self.started_at = time.perf_counter()
        self.start_mb = get_memory_usage_mb()
        self.steps = {}
        self.metrics = {}
        self.extra_context = {}
        self.errors = []
        self.failure = None

    def add_step(self, name: str, duration_ms: float, **metadata):
        self.steps[name] = dict(metadata, duration_ms=duration_ms, memory_mb=get_memory_usage_mb())

    def add_metric(self, name: str, value: Any):
        self.metrics[name] = value

    def add_context(self, **kwargs):
        self.extra_context.update(kwargs)

    def register_error(self, error_type: str, message: str, **details):
        """Records a recoverable problem (skipped file, small dataset)."""
        self.errors.append(dict(details, type=error_type, message=message, timestamp=time.time()))

    def fail(self, exc: BaseException):
        self.failure = {
            "failure_reason": f"{type(exc).__name__}: {exc}",
            "stack_trace": traceback.format_exc(),
        }

    @property
    def level(self) -> str:
        if self.failure:
            return "error"
        return "warning" if self.errors else "info"

    def to_event(self) -> dict:
        end_mb = get_memory_usage_mb()
        event = {
            "status": "failure" if self.failure else "success",
            "total_duration_ms": elapsed_ms(self.started_at),
            "memory_usage": {
                "start_mb": self.start_mb,
                "end_mb": end_mb,
                "delta_mb": round(end_mb - self.start_mb, 2),
            },
            "context": {"function": self.function, **self.extra_context},
            "metrics": self.metrics,
            "steps": self.steps,
        }
        if self.errors:
            event["non_fatal_errors"] = self.errors
        if self.failure:
            event.update(self.failure)
        return event


def canonical_logger(event_name: str):
    """
    Wraps an analyzer call so it logs exactly one wide event named
    `event_name`. The wrapped function receives its WideEventContext as
    `ctx`; exceptions are logged and re-raised.
    """

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            ctx = WideEventContext(func.__name__)
            try:
                return func(*args, ctx=ctx, **kwargs)
            except Exception as e:
                ctx.fail(e)
                raise
            finally:
                getattr(logger, ctx.level)(event_name, **ctx.to_event())

        return wrapper

    return decorator
