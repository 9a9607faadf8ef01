"""pii-shield — field-level PII masking for outbound object graphs."""

from .types import Mask, MaskField, MaskRow, Page, SupportsMaskFlag, EntityMatch
from .directives import MaskPhone, MaskEmail, MaskId, MaskName, MaskText, mask_preset, find_mask
from .algorithms import (
    Algorithm, DefaultAlgo, PhoneAlgo, EmailAlgo, IdCardAlgo, NameAlgo,
    TextAlgo, TextAlgoConfig,
)
from .accessor import AccessorCache, FieldAccessor, accessor_cache
from .registry import AlgorithmRegistry, default_registry
from .walker import discover, register_leaf_type
from .context import start, stop, is_active, add_include_field, include_fields, masking
from .redactor import Redactor
from .middleware import RedactMiddleware
from .config import create_middleware, load_config, load_from_yaml
from .exceptions import (
    ShieldError, BindingError, TypeMismatchError, AlgorithmUnavailableError, RedactionError,
)

__all__ = [
    "Mask", "MaskField", "MaskRow", "Page", "SupportsMaskFlag", "EntityMatch",
    "MaskPhone", "MaskEmail", "MaskId", "MaskName", "MaskText", "mask_preset", "find_mask",
    "Algorithm", "DefaultAlgo", "PhoneAlgo", "EmailAlgo", "IdCardAlgo", "NameAlgo",
    "TextAlgo", "TextAlgoConfig",
    "AccessorCache", "FieldAccessor", "accessor_cache",
    "AlgorithmRegistry", "default_registry",
    "discover", "register_leaf_type",
    "start", "stop", "is_active", "add_include_field", "include_fields", "masking",
    "Redactor",
    "RedactMiddleware",
    "create_middleware", "load_config", "load_from_yaml",
    "ShieldError", "BindingError", "TypeMismatchError", "AlgorithmUnavailableError",
    "RedactionError",
]
__version__ = "0.1.0"
