"""
Extraction provider contract.

The AI extraction call is an external collaborator: something that takes
document text (or a list of documents) plus a prompt and returns raw JSON,
either as text or already decoded. This module defines that contract, a
factory that builds a provider from YAML settings, and the tolerant parser
that turns model output into a JSON object.
"""

import importlib
import json
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Sequence, Union

import yaml

from errors import ConfigurationError, ExtractionValidationError
from settings import settings
from telemetry import get_logger

log = get_logger("provider")

RawExtraction = Union[str, Dict[str, Any]]


class ExtractionProvider(ABC):
    @abstractmethod
    def extract(self, *, text_or_documents: Union[Sequence[str], str], prompt: str) -> RawExtraction: ...


class CallableProvider(ExtractionProvider):
    """Adapts any function accepting (text_or_documents, prompt) to the provider contract."""

    def __init__(self, fn: Callable[..., RawExtraction], name: str = ""):
        self.fn = fn
        self.name = name or getattr(fn, "__name__", "callable")

    @classmethod
    def from_path(cls, target: str) -> "CallableProvider":
        """Resolve a "package.module:function" target."""
        module_name, _, attr = target.partition(":")
        if not module_name or not attr:
            raise ConfigurationError(f"Provider target must look like 'module:function', got {target!r}")
        try:
            fn = getattr(importlib.import_module(module_name), attr)
        except (ImportError, AttributeError) as e:
            raise ConfigurationError(f"Cannot load provider target {target!r}: {e}") from e
        return cls(fn, name=target)

    def extract(self, *, text_or_documents, prompt):
        return self.fn(text_or_documents=text_or_documents, prompt=prompt)


class FixtureProvider(ExtractionProvider):
    """Replays a saved model response from disk; used for offline runs and demos."""

    def __init__(self, response_path: str):
        self.response_path = Path(response_path)

    def extract(self, *, text_or_documents, prompt):
        return self.response_path.read_text(encoding="utf-8")


# ========================================
# PROVIDER FACTORY
# ========================================

def load_provider(config_path: str = "extraction.yaml") -> ExtractionProvider:
    """
    Load and configure an extraction provider.

    The provider kind comes from CLAIMRECON_EXTRACTION_PROVIDER, then the
    `provider` key of the YAML file, then the settings default.

    Args:
        config_path: Path to provider configuration file

    Returns:
        Configured provider instance

    Raises:
        ConfigurationError: unknown provider kind or incomplete configuration
    """
    cfg: Dict[str, Any] = {}
    if os.path.exists(config_path):
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                cfg = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Could not parse provider config {config_path}: {e}") from e
        if not isinstance(cfg, dict):
            raise ConfigurationError(f"Provider config {config_path} must contain a mapping")

    kind = os.getenv("CLAIMRECON_EXTRACTION_PROVIDER", cfg.get("provider", settings.EXTRACTION_PROVIDER)).lower()
    if kind == "callable":
        target = cfg.get("target")
        if not target:
            raise ConfigurationError("Callable provider needs a 'target' of the form module:function")
        return CallableProvider.from_path(target)
    if kind == "fixture":
        response_path = cfg.get("response_path")
        if not response_path:
            raise ConfigurationError("Fixture provider needs a 'response_path'")
        return FixtureProvider(response_path)
    raise ConfigurationError(f"Unknown provider: {kind}")


# ========================================
# TOLERANT JSON PARSING
# ========================================

_ELLIPSIS_LINES = {"...", "...,", "\"...\"", "'...'", "\"...\",", "'...',"}
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


def _clean_llm_json(raw: str) -> str:
    """Strip markdown fences, prose around the outermost object, and ellipsis placeholder lines."""
    cleaned = raw.replace("```json", "").replace("```", "")

    first = cleaned.find("{")
    last = cleaned.rfind("}")
    if first != -1 and last > first:
        if first > 0:
            log.debug(f"Stripped {first} chars of leading prose from extraction output")
        cleaned = cleaned[first:last + 1]

    lines = [line for line in cleaned.splitlines() if line.strip() not in _ELLIPSIS_LINES]
    return "\n".join(lines).strip()


def _remove_trailing_commas(json_str: str) -> str:
    cleaned = _TRAILING_COMMA.sub(r"\1", json_str)
    if cleaned != json_str:
        log.debug(f"Removed {len(_TRAILING_COMMA.findall(json_str))} trailing comma(s)")
    return cleaned


def parse_extraction_json(raw: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Parse model output into a JSON object.

    Strategy:
    1. Already a dict: returned as-is
    2. Clean the text (fences, prose, ellipsis lines) and parse
    3. On failure, remove trailing commas and parse again

    Raises:
        ExtractionValidationError: output is empty, unparsable, or not a JSON object
    """
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        raise ExtractionValidationError(
            f"Extraction output must be JSON text or an object, got {type(raw).__name__}",
            payload_type=type(raw).__name__,
        )

    cleaned = _clean_llm_json(raw)
    if not cleaned:
        raise ExtractionValidationError("Extraction output is empty", payload_type="str")

    try:
        result = json.loads(cleaned)
    except ValueError as e1:
        log.debug(f"Direct JSON parse failed: {e1}")
        try:
            result = json.loads(_remove_trailing_commas(cleaned))
        except json.JSONDecodeError as e2:
            log.warning(f"Could not parse extraction output as JSON: {e2}")
            raise ExtractionValidationError(
                f"Extraction output is not valid JSON (line {e2.lineno}, column {e2.colno})",
                payload_type="str",
            ) from e2
        except ValueError as e2:
            # e.g. integer literals past the int string-conversion limit
            log.warning(f"Could not parse extraction output as JSON: {e2}")
            raise ExtractionValidationError(f"Extraction output is not valid JSON: {e2}",
                                            payload_type="str") from e2

    if not isinstance(result, dict):
        raise ExtractionValidationError(
            f"Extraction output must be a JSON object, got {type(result).__name__}",
            payload_type=type(result).__name__,
        )
    return result
