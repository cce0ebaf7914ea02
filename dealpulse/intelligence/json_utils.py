"""Utilities for normalising LLM payloads that should contain JSON objects.

Parsing is an ordered chain of strategies. Each strategy takes the raw text
and either returns a dict or raises ``ResponseParseError``; the chain stops
at the first success.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, Iterable, List, Optional

import structlog

from dealpulse.core.exceptions import ResponseParseError

logger = structlog.get_logger(__name__)

ParseStrategy = Callable[[str], Dict[str, Any]]

_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_GREEDY_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_LEADING_LABEL = re.compile(r"^\s*(?:json|JSON)\s*:?\s*", re.MULTILINE)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_SMART_QUOTES = str.maketrans({"“": '"', "”": '"', "‘": "'", "’": "'"})


def _loads_object(candidate: str, strategy: str) -> Dict[str, Any]:
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise ResponseParseError(f"{strategy}: {exc.msg}", details={"strategy": strategy}) from exc
    if not isinstance(value, dict):
        raise ResponseParseError(
            f"{strategy}: expected a JSON object, got {type(value).__name__}",
            details={"strategy": strategy},
        )
    return value


def parse_direct(text: str) -> Dict[str, Any]:
    """The whole payload is a JSON object."""
    return _loads_object(text.strip(), "direct")


def parse_fenced(text: str) -> Dict[str, Any]:
    """JSON wrapped in a markdown code fence; the first block that decodes wins."""
    last_error = None
    for block in _FENCE.findall(text):
        block = block.strip()
        if not block.startswith("{"):
            continue
        try:
            return _loads_object(block, "fenced")
        except ResponseParseError as exc:
            last_error = exc
    if last_error is not None:
        raise last_error
    raise ResponseParseError("fenced: no fenced JSON block", details={"strategy": "fenced"})


def parse_greedy_braces(text: str) -> Dict[str, Any]:
    """Everything from the first ``{`` to the last ``}``."""
    match = _GREEDY_OBJECT.search(text)
    if not match:
        raise ResponseParseError("greedy: no braces found", details={"strategy": "greedy"})
    return _loads_object(match.group(0), "greedy")


def strip_markers(text: str) -> str:
    """Remove fences, labels, BOMs, smart quotes and trailing commas."""
    cleaned = text.replace("\ufeff", "").translate(_SMART_QUOTES)
    cleaned = cleaned.replace("```json", "").replace("```JSON", "").replace("```", "")
    cleaned = _LEADING_LABEL.sub("", cleaned)
    return _TRAILING_COMMA.sub(r"\1", cleaned).strip()


def parse_marker_stripped(text: str) -> Dict[str, Any]:
    """Retry direct and greedy parsing after stripping common noise."""
    cleaned = strip_markers(text)
    try:
        return _loads_object(cleaned, "stripped")
    except ResponseParseError:
        return parse_greedy_braces(cleaned)


DEFAULT_STRATEGIES: List[ParseStrategy] = [
    parse_direct,
    parse_fenced,
    parse_greedy_braces,
    parse_marker_stripped,
]


class ResponseParser:
    """Ordered strategy chain for extracting one JSON object from model output."""

    def __init__(self, strategies: Optional[Iterable[ParseStrategy]] = None):
        self.strategies: List[ParseStrategy] = list(
            strategies if strategies is not None else DEFAULT_STRATEGIES
        )

    def register(self, strategy: ParseStrategy) -> None:
        """Append a strategy; it runs after the existing ones."""
        self.strategies.append(strategy)

    def parse(self, text: Optional[str]) -> Dict[str, Any]:
        if not text or not text.strip():
            raise ResponseParseError("Empty payload")

        errors = []
        for strategy in self.strategies:
            try:
                result = strategy(text)
            except ResponseParseError as exc:
                errors.append(exc.message)
                continue
            logger.debug("response_parsed", strategy=strategy.__name__)
            return result

        raise ResponseParseError(
            "Could not extract JSON from payload", details={"attempts": errors}
        )


def coerce_json_payload(text: Optional[str]) -> Dict[str, Any]:
    """Parse a model response with the default strategy chain."""
    return ResponseParser().parse(text)
