"""Redactor — the main API.

Usage:
    from pii_shield import Redactor, Mask, MaskPhone, masking

    @dataclass
    class UserVo:
        name: str
        phone: Annotated[str, MaskPhone]

    redactor = Redactor()                 # reusable, thread-safe
    with masking():
        user = redactor.redact(UserVo("Li Lei", "13812345678"))
    user.phone                            # "138****5678"

The payload is mutated in place and returned.  The activation context is
NOT consulted here; deciding whether to call ``redact`` at all is the
caller's job (see ``middleware.RedactMiddleware``).

Redaction is not idempotent: a second call masks the masked value again.
"""

from __future__ import annotations
import logging
from typing import Any, TypeVar

from .exceptions import RedactionError
from .registry import AlgorithmRegistry, default_registry
from .types import MaskField, Page
from .walker import discover, is_complex

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Redactor:
    """Applies field directives across an object graph."""

    def __init__(self, registry: AlgorithmRegistry | None = None) -> None:
        self.registry = registry or default_registry

    def redact(self, payload: T) -> T:
        """Mask every eligible field reachable from ``payload`` in place.

        Raises RedactionError on any accessor or algorithm failure; the
        payload may then be partially masked and must not be served.
        """
        if payload is None:
            return payload
        try:
            self._dispatch(payload)
        except RedactionError:
            raise
        except Exception as e:
            raise RedactionError(f"Failed to redact {type(payload).__name__}") from e
        return payload

    def _dispatch(self, data: Any) -> None:
        if isinstance(data, Page):
            if data.records:
                self._redact_list(data.records)
        elif isinstance(data, (list, tuple)):
            self._redact_list(data)
        else:
            self._redact_object(data)

    def _redact_list(self, items: list | tuple) -> None:
        logger.debug("Redacting list with %d elements", len(items))
        for item in items:
            if item is not None:
                self._dispatch(item)

    def _redact_object(self, data: Any) -> None:
        if not is_complex(type(data)):
            return
        fields = discover(data, mask_flag=True)
        if not fields:
            logger.debug("No fields to mask in %s", type(data).__name__)
            return
        logger.debug("Masking %d fields in %s", len(fields), type(data).__name__)
        for field in fields:
            self.apply(field)

    def apply(self, field: MaskField) -> None:
        """Mask one discovered field."""
        if not field.should_mask:
            return
        value = field.get_value()
        if value is None:
            logger.debug("Skipping null field %s", field.name)
            return
        if not isinstance(value, str):
            logger.debug(
                "Unsupported type for masking: %s (field %s)", type(value).__name__, field.name,
            )
            return
        algo = self.registry.resolve(field.mask.algo)
        field.set_value(algo.mask(value))
