"""YAML/dict config loader for pii-shield.

Supports loading from a YAML file or a plain dict (for embedding in a
larger service config).  Redaction *rules* never live here; they are
declared on the data model.  Config only wires up algorithms and types.

Example YAML:

    pii_shield:
      enabled: true
      log_level: INFO
      algorithms:
        card: myapp.masking:CardAlgo
      leaf_types:
        - myapp.money:Money
      text:
        use_presidio: false
        language: en
        score_threshold: 0.35
        entities:
          - PERSON
          - LOCATION
        skip_types:
          - IP_ADDRESS
        allow_list:
          - support@example.com
"""

from __future__ import annotations
import logging
from contextlib import nullcontext
from pathlib import Path
from typing import Any

from .algorithms import TextAlgo, TextAlgoConfig
from .middleware import RedactMiddleware
from .redactor import Redactor
from .registry import AlgorithmRegistry, import_string
from .walker import register_leaf_type


class _NoopMiddleware:
    """Pass-through middleware when redaction is disabled."""
    def scope(self, *include_fields: str):
        return nullcontext()
    def process_response(self, body: Any) -> Any:
        return body
    def __call__(self, handler):
        return handler


def load_config(data: dict[str, Any]) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline)."""
    # Support nested under "pii_shield" key or flat
    if "pii_shield" in data:
        data = data["pii_shield"] or {}

    text = data.get("text") or {}
    return {
        "enabled": data.get("enabled", True),
        "log_level": data.get("log_level"),
        "algorithms": dict(data.get("algorithms") or {}),
        "leaf_types": list(data.get("leaf_types") or []),
        "text": {
            "use_presidio": text.get("use_presidio", False),
            "language": text.get("language", "en"),
            "score_threshold": text.get("score_threshold", 0.35),
            "entities": text.get("entities"),
            "skip_types": set(text.get("skip_types") or []),
            "allow_list": set(text.get("allow_list") or []),
        },
    }


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    import yaml  # optional for dict-only configs
    with open(Path(path).expanduser()) as f:
        return load_config(yaml.safe_load(f) or {})


def _import(path: str, what: str) -> Any:
    try:
        return import_string(path)
    except (ImportError, AttributeError, ValueError) as e:
        raise ValueError(f"Cannot import {what} {path!r}: {e}") from e


def build_registry(cfg: dict[str, Any]) -> AlgorithmRegistry:
    """An algorithm registry with the configured algorithms registered."""
    text = cfg["text"]
    text_config = TextAlgoConfig(
        use_presidio=text["use_presidio"],
        language=text["language"],
        score_threshold=text["score_threshold"],
        presidio_entities=text["entities"],
        skip_types=text["skip_types"],
        allow_list=text["allow_list"],
    )
    registry = AlgorithmRegistry()
    registry.register("text", lambda: TextAlgo(text_config))
    for name, path in cfg["algorithms"].items():
        registry.register(name, _import(path, "algorithm"))
    return registry


def create_middleware(config: dict[str, Any]) -> RedactMiddleware | _NoopMiddleware:
    """Create a fully configured middleware from a config dict."""
    cfg = load_config(config)

    if cfg["log_level"]:
        logging.getLogger("pii_shield").setLevel(str(cfg["log_level"]).upper())

    if not cfg["enabled"]:
        return _NoopMiddleware()

    for path in cfg["leaf_types"]:
        register_leaf_type(_import(path, "leaf type"))

    return RedactMiddleware(redactor=Redactor(build_registry(cfg)))
