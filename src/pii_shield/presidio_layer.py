"""Presidio NER layer for ``TextAlgo``.

Catches names, organizations and locations inside free-text fields that
the regex layer can't reliably detect.  Optional: requires
``presidio-analyzer`` and a spaCy model for the configured language.
"""

from __future__ import annotations
import logging
import threading
from typing import TYPE_CHECKING

from .types import EntityMatch

if TYPE_CHECKING:
    from presidio_analyzer import AnalyzerEngine

logger = logging.getLogger(__name__)

# Lazy, per-language engines; spaCy is only loaded on first use
_engines: dict[str, AnalyzerEngine] = {}
_lock = threading.Lock()

DEFAULT_ENTITIES = [
    "PERSON",
    "LOCATION",
    "NRP",           # nationality, religious, political group
    "MEDICAL_LICENSE",
    "IBAN_CODE",
]


def get_engine(language: str = "en") -> AnalyzerEngine:
    """Return the shared analyzer for ``language``, creating it once."""
    engine = _engines.get(language)
    if engine is not None:
        return engine
    with _lock:
        engine = _engines.get(language)
        if engine is None:
            from presidio_analyzer import AnalyzerEngine
            from presidio_analyzer.nlp_engine import NlpEngineProvider

            logger.debug("Loading Presidio analyzer for language %r", language)
            provider = NlpEngineProvider(nlp_configuration={
                "nlp_engine_name": "spacy",
                "models": [{"lang_code": language, "model_name": f"{language}_core_web_sm"}],
            })
            engine = AnalyzerEngine(
                nlp_engine=provider.create_engine(),
                supported_languages=[language],
            )
            _engines[language] = engine
    return engine


def scan_presidio(
    text: str,
    *,
    language: str = "en",
    entities: list[str] | None = None,
    score_threshold: float = 0.35,
    exclude_spans: list[tuple[int, int]] | None = None,
) -> list[EntityMatch]:
    """Run Presidio analysis on text.

    Args:
        text: Input text to scan.
        language: ISO language code.
        entities: Entity types to detect (None = DEFAULT_ENTITIES).
        score_threshold: Minimum confidence score.
        exclude_spans: Spans already matched by the regex layer; overlapping results are dropped.
    """
    results = get_engine(language).analyze(
        text=text,
        language=language,
        entities=entities or DEFAULT_ENTITIES,
        score_threshold=score_threshold,
    )

    exclude = exclude_spans or []
    matches: list[EntityMatch] = []
    for r in results:
        # Regex wins for structured PII
        if any(r.start < e and r.end > s for s, e in exclude):
            continue
        matches.append(EntityMatch(
            entity_type=r.entity_type,
            start=r.start,
            end=r.end,
            text=text[r.start:r.end],
            score=r.score,
            source="presidio",
        ))
    return sorted(matches, key=lambda m: m.start)
