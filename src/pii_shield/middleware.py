"""Response middleware — the thin glue between a web framework and the engine.

Usage as a scope:

    mw = RedactMiddleware.create()

    with mw.scope("phone"):
        body = handler(request)
        body = mw.process_response(body)

Usage as a decorator (sync or async handlers):

    @mw
    async def get_user(user_id):
        context.start()              # the handler opts in
        return await load_user(user_id)

Streams, files and raw bytes pass through untouched.  The activation
context is always cleared once a response has been processed.
"""

from __future__ import annotations
import functools
import inspect
import io
import os
from collections.abc import AsyncIterator, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable

from . import context
from .redactor import Redactor
from .registry import AlgorithmRegistry

_PASSTHROUGH = (bytes, bytearray, memoryview, io.IOBase, os.PathLike, Iterator, AsyncIterator)


def is_streaming(body: Any) -> bool:
    """File downloads and streamed bodies are never redacted."""
    return isinstance(body, _PASSTHROUGH)


@dataclass
class RedactMiddleware:
    """Redacts outbound payloads while the activation context is on."""

    redactor: Redactor

    @classmethod
    def create(cls, *, registry: AlgorithmRegistry | None = None) -> "RedactMiddleware":
        return cls(redactor=Redactor(registry))

    @contextmanager
    def scope(self, *include_fields: str):
        """Activate redaction for one unit of work; always cleared on exit."""
        with context.masking(*include_fields) as state:
            yield state

    def process_response(self, body: Any) -> Any:
        """Redact ``body`` if redaction is active, then clear the context."""
        if not context.is_active():
            return body
        try:
            if body is None or is_streaming(body):
                return body
            return self.redactor.redact(body)
        finally:
            context.stop()

    def __call__(self, handler: Callable) -> Callable:
        if inspect.iscoroutinefunction(handler):
            @functools.wraps(handler)
            async def async_wrapper(*args, **kwargs):
                try:
                    return self.process_response(await handler(*args, **kwargs))
                finally:
                    context.stop()
            return async_wrapper

        @functools.wraps(handler)
        def wrapper(*args, **kwargs):
            try:
                return self.process_response(handler(*args, **kwargs))
            finally:
                context.stop()
        return wrapper
