import functools
import gzip
import inspect
import json
import logging
import logging.handlers
import os
import shutil
import sys
from datetime import datetime
from gzip import GzipFile
from pathlib import Path
from typing import Any, Callable, Mapping, ParamSpec, TypeVar

from . import __version__
from .config import settings

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger("erpsync")
logger.setLevel(logging.DEBUG)
formatter = logging.Formatter(
    "%(asctime)s %(levelname)s [%(module)s:%(funcName)s:%(lineno)d] %(message)s"
)

logs_dir = Path(settings.logs_dir)
logs_dir.mkdir(exist_ok=True)


def rotator(source, dest):
    with open(source, "rb") as f_in:
        with gzip.open(dest + ".gz", "wb") as f_out:
            assert isinstance(f_out, GzipFile)
            shutil.copyfileobj(f_in, f_out)
    os.remove(source)


log_file_handler = logging.handlers.TimedRotatingFileHandler(
    logs_dir / "erpsync.log", when="midnight"
)
log_file_handler.setFormatter(formatter)
log_file_handler.rotator = rotator
logger.addHandler(log_file_handler)

log_stream_handler = logging.StreamHandler(sys.stdout)
log_stream_handler.setFormatter(formatter)
logger.addHandler(log_stream_handler)


def log_exception(
    prefix: str = "",
    default_return: R | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to wrap a function with try-except and log exceptions.

    Supports both sync and async functions while preserving type signatures.
    The stacklevel is set to show the original function name and line number in logs.

    Args:
        prefix: Optional prefix to prepend to the error message. May contain
            ``{param}`` placeholders filled from the bound call arguments.
        default_return: Value returned instead of raising

    Usage:
        @log_exception("Sync {job_type}")
        async def my_async_func(job_type):
            ...
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        sig = inspect.signature(func)
        func_name = func.__qualname__

        def format_args_kwargs(args: tuple, kwargs: dict) -> tuple[dict, str]:
            """
            Format function arguments for logging with parameter names.

            Returns:
                (bound_arguments_dict, formatted_string)
            """
            try:
                bound = sig.bind(*args, **kwargs)
                bound.apply_defaults()
                params = ", ".join(f"{k}={v!r}" for k, v in bound.arguments.items())
                return bound.arguments, f"[{params}] " if params else ""
            except Exception as e:
                logger.warning(
                    f"Failed to bind arguments for function {func_name}: {e}",
                    stacklevel=3,  # format_args_kwargs -> wrapper -> user code
                )
                parts = []
                if args:
                    parts.append(f"args={args!r}")
                if kwargs:
                    parts.append(f"kwargs={kwargs!r}")
                return {}, f"[{', '.join(parts)}] " if parts else ""

        def format_prefix(bound_args: dict) -> str:
            """Format prefix with parameter substitution if braces present."""
            if not prefix:
                return ""

            if "{" in prefix and "}" in prefix:
                try:
                    formatted = prefix.format_map(bound_args)
                    return f"{formatted}: "
                except (KeyError, ValueError) as e:
                    logger.warning(
                        f"Failed to format prefix '{prefix}' with arguments: {e}",
                        stacklevel=3,  # format_prefix -> wrapper -> user code
                    )
                    return f"{prefix}: "
            else:
                return f"{prefix}: "

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    bound_args, args_str = format_args_kwargs(args, kwargs)
                    prefix_str = format_prefix(bound_args)
                    logger.error(
                        f"{args_str}{prefix_str}{type(e).__name__}: {e}",
                        exc_info=True,
                        stacklevel=2,
                    )
                    return default_return  # type: ignore[return-value]

            return async_wrapper  # type: ignore[return-value]

        else:

            @functools.wraps(func)
            def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    bound_args, args_str = format_args_kwargs(args, kwargs)
                    prefix_str = format_prefix(bound_args)
                    logger.error(
                        f"{args_str}{prefix_str}{type(e).__name__}: {e}",
                        exc_info=True,
                        stacklevel=2,
                    )
                    return default_return  # type: ignore[return-value]

            return sync_wrapper  # type: ignore[return-value]

    return decorator


@log_exception("Failed to emit event")
def log_event(message: str, context: Mapping[str, Any] | None = None) -> None:
    """
    Emit one structured observability event as a JSON line.

    Never raises: serialization problems are logged and swallowed.
    """
    line = {
        "msg": message,
        "context": dict(context or {}),
        "time": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "ver": __version__,
    }
    logger.info(json.dumps(line, ensure_ascii=False, default=str), stacklevel=3)
