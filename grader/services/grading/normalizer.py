"""
Response Normalizer
===================

Turns whatever a provider produced into validated data:

1. Structured input (dict/list) goes straight to validation.
2. Text is stripped of a leading and/or trailing markdown code fence (```json ... ```),
   then parsed as JSON.
3. Required fields are checked against the requested shape.

Every failure raises SchemaValidationError carrying the raw text. These are
not retried and do not move on to another provider: a provider that answered
has answered, and the caller decides whether to resubmit.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from dispatch.errors import SchemaValidationError

from .models import ProviderEvaluation

ModelT = TypeVar("ModelT", bound=BaseModel)

Raw = Union[str, Mapping[str, Any], list]

REQUIRED_EVALUATION_FIELDS = ("feedback", "suggestions", "strengths", "weaknesses", "questionScores")

_LEADING_FENCE_RE = re.compile(r"^```(?:[\w-]+(?=\s))?[ \t]*\n?")
_TRAILING_FENCE_RE = re.compile(r"\n?[ \t]*```$")

_JSON_TYPES: Dict[str, tuple] = {
    "object": (dict,),
    "array": (list,),
    "string": (str,),
    "number": (int, float),
    "integer": (int,),
    "boolean": (bool,),
}


def strip_code_fence(text: str) -> str:
    """Remove a leading and/or trailing markdown code fence, if present.

    Each side is stripped on its own, so a reply cut off before its closing
    fence still parses.
    """
    stripped = _LEADING_FENCE_RE.sub("", text.strip(), count=1)
    stripped = _TRAILING_FENCE_RE.sub("", stripped, count=1)
    return stripped.strip()


def _raw_text(raw: Raw) -> str:
    return raw if isinstance(raw, str) else json.dumps(raw, default=str)


def parse_json(raw: Raw, provider: Optional[str] = None) -> Any:
    """Parse provider output into JSON data."""
    if isinstance(raw, (dict, list)):
        return raw
    if not isinstance(raw, str):
        raise SchemaValidationError(
            f"Unsupported response type: {type(raw).__name__}", raw_text=str(raw), provider=provider
        )

    text = strip_code_fence(raw)
    if not text:
        raise SchemaValidationError("Response is empty", raw_text=raw, provider=provider)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaValidationError(
            f"Response is not valid JSON: {e.msg} (line {e.lineno}, column {e.colno})",
            raw_text=raw,
            provider=provider,
        ) from e


def normalize_evaluation(raw: Raw, expected_slots: int, provider: Optional[str] = None) -> ProviderEvaluation:
    """
    Validate a provider's evaluation.

    Args:
        raw: Provider text or already-parsed data
        expected_slots: Number of questions in the request
        provider: Provider that produced the text, for diagnostics

    Returns:
        ProviderEvaluation with exactly `expected_slots` question scores

    Raises:
        SchemaValidationError: Unparseable, missing fields, or wrong slot count
    """
    data = parse_json(raw, provider)
    raw_text = _raw_text(raw)

    if not isinstance(data, dict):
        raise SchemaValidationError("Evaluation must be a JSON object", raw_text=raw_text, provider=provider)

    missing = [name for name in REQUIRED_EVALUATION_FIELDS if name not in data]
    if missing:
        raise SchemaValidationError(
            f"Evaluation is missing required fields: {', '.join(missing)}",
            raw_text=raw_text,
            provider=provider,
        )

    scores = data["questionScores"]
    if not isinstance(scores, list):
        raise SchemaValidationError("questionScores must be an array", raw_text=raw_text, provider=provider)
    for index, item in enumerate(scores):
        if not isinstance(item, dict) or "score" not in item or "feedback" not in item:
            raise SchemaValidationError(
                f"questionScores[{index}] must have score and feedback",
                raw_text=raw_text,
                provider=provider,
            )
    if len(scores) != expected_slots:
        raise SchemaValidationError(
            f"Expected {expected_slots} question scores, got {len(scores)}",
            raw_text=raw_text,
            provider=provider,
        )

    try:
        return ProviderEvaluation.model_validate(data)
    except ValidationError as e:
        raise SchemaValidationError(
            f"Evaluation failed validation: {e.errors()[0]['msg']} at {_loc(e)}",
            raw_text=raw_text,
            provider=provider,
        ) from e


def _loc(error: ValidationError) -> str:
    loc = error.errors()[0].get("loc", ())
    return ".".join(str(part) for part in loc) or "<root>"


def _type_matches(value: Any, type_name: str) -> bool:
    expected = _JSON_TYPES.get(type_name.lower())
    if expected is None:
        return True
    if isinstance(value, bool) and type_name.lower() != "boolean":
        return False
    return isinstance(value, expected)


def _check_required(value: Any, schema: Mapping[str, Any], path: str) -> Optional[str]:
    """Return a description of the first missing required field, if any."""
    if isinstance(value, dict):
        for name in schema.get("required") or []:
            if name not in value:
                return f"{path}.{name}" if path else name
        properties = schema.get("properties") or {}
        for name, sub_schema in properties.items():
            if name in value and isinstance(sub_schema, Mapping):
                problem = _check_required(value[name], sub_schema, f"{path}.{name}" if path else name)
                if problem:
                    return problem
    elif isinstance(value, list):
        items = schema.get("items")
        if isinstance(items, Mapping):
            for index, item in enumerate(value):
                problem = _check_required(item, items, f"{path}[{index}]")
                if problem:
                    return problem
    return None


def normalize_json(raw: Raw, schema: Optional[Mapping[str, Any]] = None, provider: Optional[str] = None) -> Any:
    """Parse provider output and check it against a JSON schema's type and required keys."""
    data = parse_json(raw, provider)
    if not schema:
        return data

    type_name = schema.get("type")
    if isinstance(type_name, str) and not _type_matches(data, type_name):
        raise SchemaValidationError(
            f"Expected a JSON {type_name.lower()}, got {type(data).__name__}",
            raw_text=_raw_text(raw),
            provider=provider,
        )

    missing = _check_required(data, schema, "")
    if missing:
        raise SchemaValidationError(
            f"Response is missing required field: {missing}",
            raw_text=_raw_text(raw),
            provider=provider,
        )
    return data


def normalize_model(
    raw: Raw,
    model_cls: Type[ModelT],
    schema: Optional[Mapping[str, Any]] = None,
    provider: Optional[str] = None,
) -> ModelT:
    """Parse, check required keys, then validate into a pydantic model."""
    data = normalize_json(raw, schema, provider)
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise SchemaValidationError(
            f"{model_cls.__name__} failed validation: {e.errors()[0]['msg']} at {_loc(e)}",
            raw_text=_raw_text(raw),
            provider=provider,
        ) from e


__all__ = [
    "REQUIRED_EVALUATION_FIELDS",
    "normalize_evaluation",
    "normalize_json",
    "normalize_model",
    "parse_json",
    "strip_code_fence",
]
