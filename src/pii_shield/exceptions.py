"""Error taxonomy for the redaction engine."""

from __future__ import annotations


class ShieldError(Exception):
    """Base class for every error raised by pii-shield."""


class BindingError(ShieldError):
    """A field accessor could not be built.  Never cached, so retrying is fine."""


class TypeMismatchError(ShieldError):
    """A value is not assignable to the field's declared type."""


class AlgorithmUnavailableError(ShieldError):
    """Neither the requested nor the default algorithm could be constructed."""


class RedactionError(ShieldError):
    """Raised by ``Redactor.redact``.  The payload must not be served."""
