"""Built-in masking algorithms.

An algorithm is a pure ``str -> str`` transform.  The shape-aware ones only
touch values that look like what they expect and return anything else
unchanged.

    >>> PhoneAlgo().mask("13812345678")
    '138****5678'
    >>> EmailAlgo().mask("ab@test.com")
    'a*@test.com'
"""

from __future__ import annotations
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from .types import EntityMatch
from .patterns import scan_regex, dedupe

MASK_CHAR = "*"

_PHONE = re.compile(r"1[3-9]\d{9}")
_ID_CARD = re.compile(r"\d{15}|\d{17}[\dXx]")
_EMAIL = re.compile(r"[\w.\-]+@[\w.\-]+\.[a-zA-Z]{2,}")
_CJK_NAME = re.compile(r"[\u4e00-\u9fa5]+")
_LATIN_NAME = re.compile(r"[a-zA-Z]+")


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _keep_ends(value: str) -> str:
    """First and last character kept, everything between starred."""
    return value[0] + MASK_CHAR * (len(value) - 2) + value[-1]


def mask_phone(phone: str) -> str:
    if _blank(phone):
        return phone
    phone = phone.strip()
    if not _PHONE.fullmatch(phone):
        return phone
    return phone[:3] + MASK_CHAR * 4 + phone[7:]


def mask_id_card(id_card: str) -> str:
    if _blank(id_card):
        return id_card
    id_card = id_card.strip()
    if not _ID_CARD.fullmatch(id_card):
        return id_card
    if len(id_card) == 18:
        return id_card[:6] + MASK_CHAR * 8 + id_card[14:]
    return id_card[:6] + MASK_CHAR * 6 + id_card[12:]


def mask_email(email: str) -> str:
    if _blank(email):
        return email
    email = email.strip()
    if not _EMAIL.fullmatch(email):
        return email
    at = email.index("@")
    user, domain = email[:at], email[at:]
    if len(user) <= 2:
        return user[0] + MASK_CHAR + domain
    return _keep_ends(user) + domain


def mask_chinese_name(name: str) -> str:
    if _blank(name):
        return name
    name = name.strip()
    if not _CJK_NAME.fullmatch(name) or len(name) == 1:
        return name
    if len(name) == 2:
        return name[0] + MASK_CHAR
    return _keep_ends(name)


def mask_english_name(name: str) -> str:
    if _blank(name):
        return name
    name = name.strip()
    if not _LATIN_NAME.fullmatch(name):
        return name
    if len(name) <= 2:
        return name[0] + MASK_CHAR
    return _keep_ends(name)


class Algorithm(ABC):
    """Base class for masking algorithms."""

    @abstractmethod
    def mask(self, content: str) -> str:
        ...

    def __call__(self, content: str) -> str:
        return self.mask(content)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class DefaultAlgo(Algorithm):
    """Replaces the whole value.  Also the fallback for broken algorithms."""

    def mask(self, content: str) -> str:
        return MASK_CHAR * 5


class PhoneAlgo(Algorithm):
    def mask(self, content: str) -> str:
        return mask_phone(content)


class IdCardAlgo(Algorithm):
    def mask(self, content: str) -> str:
        return mask_id_card(content)


class EmailAlgo(Algorithm):
    def mask(self, content: str) -> str:
        return mask_email(content)


class NameAlgo(Algorithm):
    """Chinese or Latin personal names; mixed scripts are left alone."""

    def mask(self, content: str) -> str:
        if not _blank(content) and _CJK_NAME.fullmatch(content.strip()):
            return mask_chinese_name(content)
        return mask_english_name(content)


@dataclass
class TextAlgoConfig:
    """Configuration for ``TextAlgo``."""
    use_presidio: bool = False        # enable the NER layer
    language: str = "en"
    score_threshold: float = 0.35     # minimum confidence for Presidio
    presidio_entities: list[str] | None = None  # None = defaults
    # Entity types to leave alone (e.g. don't mask IPs in an ops note)
    skip_types: set[str] = field(default_factory=set)
    # Values that should NEVER be masked
    allow_list: set[str] = field(default_factory=set)


class TextAlgo(Algorithm):
    """Masks PII found inside free text, leaving the rest readable.

    Layer 1: regex patterns (emails, phones, ID cards, cards, keys)
    Layer 2: Presidio NER (names, locations), when enabled
    Each detected span becomes ``*`` of the same length.
    """

    def __init__(self, config: TextAlgoConfig | None = None) -> None:
        self.config = config or TextAlgoConfig()

    def find(self, text: str) -> list[EntityMatch]:
        cfg = self.config
        matches = scan_regex(text, skip_types=cfg.skip_types)

        if cfg.use_presidio:
            from .presidio_layer import scan_presidio
            ner = scan_presidio(
                text,
                language=cfg.language,
                entities=cfg.presidio_entities,
                score_threshold=cfg.score_threshold,
                exclude_spans=[(m.start, m.end) for m in matches],
            )
            matches.extend(m for m in ner if m.entity_type not in cfg.skip_types)

        return dedupe([m for m in matches if m.text not in cfg.allow_list])

    def mask(self, content: str) -> str:
        if _blank(content):
            return content
        result = content
        # Right-to-left keeps earlier offsets valid
        for m in reversed(self.find(content)):
            result = result[:m.start] + MASK_CHAR * (m.end - m.start) + result[m.end:]
        return result
