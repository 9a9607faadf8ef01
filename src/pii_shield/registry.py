"""Algorithm registry — identifier -> live, cached algorithm instance.

Resolution order, first success wins:

    1. cached instance
    2. external provider, e.g. a DI container's ``lookup(identifier)``
    3. direct construction (registered factory, the class itself, or a
       ``"package.module:Class"`` import path)
    4. the default algorithm, cached under the requested identifier
"""

from __future__ import annotations
import importlib
import logging
import threading
from collections.abc import Hashable
from typing import Any, Callable

from .algorithms import (
    Algorithm,
    DefaultAlgo,
    EmailAlgo,
    IdCardAlgo,
    NameAlgo,
    PhoneAlgo,
    TextAlgo,
)
from .exceptions import AlgorithmUnavailableError
from .types import DEFAULT_ALGO

logger = logging.getLogger(__name__)

Provider = Callable[[Hashable], "Algorithm | None"]

BUILTIN_FACTORIES: dict[str, Callable[[], Algorithm]] = {
    DEFAULT_ALGO: DefaultAlgo,
    "phone": PhoneAlgo,
    "email": EmailAlgo,
    "id_card": IdCardAlgo,
    "name": NameAlgo,
    "text": TextAlgo,
}


def import_string(path: str) -> Any:
    """Import ``"package.module:attr"``."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Expected 'package.module:attr', got {path!r}")
    obj: Any = importlib.import_module(module_name)
    for part in attr.split("."):
        obj = getattr(obj, part)
    return obj


def _usable(algo: Any) -> bool:
    return algo is not None and callable(getattr(algo, "mask", None))


def _is_default(identifier: Hashable) -> bool:
    return identifier == DEFAULT_ALGO or identifier is DefaultAlgo


class AlgorithmRegistry:
    """Thread-safe, lazily populated algorithm cache.

    Usage:
        registry = AlgorithmRegistry()
        registry.register("card", CardAlgo)          # at startup
        registry.resolve("card").mask("4111111111111111")
        registry.resolve(PhoneAlgo)                  # classes work as identifiers
    """

    def __init__(
        self,
        provider: Provider | None = None,
        factories: dict[Hashable, Callable[[], Any]] | None = None,
    ) -> None:
        self._factories: dict[Hashable, Callable[[], Any]] = dict(BUILTIN_FACTORIES)
        if factories:
            self._factories.update(factories)
        self._provider = provider
        self._cache: dict[Hashable, Any] = {}
        # Re-entrant: the fallback path constructs while holding it
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, name: Hashable, factory: Callable[[], Any]) -> None:
        """Register (or replace) the factory for ``name``."""
        with self._lock:
            self._factories[name] = factory
            self._cache.pop(name, None)

    def set_provider(self, provider: Provider | None) -> None:
        with self._lock:
            self._provider = provider

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, identifier: Hashable = DEFAULT_ALGO) -> Algorithm:
        algo = self._cache.get(identifier)
        if algo is not None:
            return algo
        with self._lock:
            algo = self._cache.get(identifier)
            if algo is None:
                algo = self._create(identifier)
                self._cache[identifier] = algo
        return algo

    def _create(self, identifier: Hashable) -> Algorithm:
        logger.debug("Creating masking algorithm %r", identifier)
        try:
            return self._provide_or_construct(identifier)
        except Exception as e:
            if _is_default(identifier):
                raise AlgorithmUnavailableError(
                    "Failed to create the default masking algorithm"
                ) from e
            logger.warning(
                "Falling back to the default masking algorithm for %r: %s", identifier, e,
            )
            try:
                return self._provide_or_construct(DEFAULT_ALGO)
            except Exception as ex:
                raise AlgorithmUnavailableError(
                    f"Failed to create masking algorithm {identifier!r} and the default fallback also failed"
                ) from ex

    def _provide_or_construct(self, identifier: Hashable) -> Algorithm:
        if self._provider is not None:
            try:
                algo = self._provider(identifier)
            except Exception:
                logger.debug("Provider lookup failed for %r", identifier, exc_info=True)
                algo = None
            if _usable(algo):
                logger.debug("Algorithm %r supplied by provider", identifier)
                return algo

        factory = self._factories.get(identifier)
        if factory is None:
            if isinstance(identifier, type):
                factory = identifier
            elif isinstance(identifier, str) and ":" in identifier:
                factory = import_string(identifier)
            else:
                raise LookupError(f"Unknown masking algorithm {identifier!r}")

        algo = factory()
        if not _usable(algo):
            raise TypeError(f"{factory!r} did not produce an object with a mask() method")
        return algo

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def names(self) -> list[str]:
        return sorted(n for n in self._factories if isinstance(n, str))

    @property
    def size(self) -> int:
        return len(self._cache)

    def clear(self) -> None:
        logger.debug("Clearing masking algorithm cache")
        with self._lock:
            self._cache.clear()


default_registry = AlgorithmRegistry()
