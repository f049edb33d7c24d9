#!/usr/bin/env python3
"""
record_codec.py

Shared textual record layer used by the lending export and the stock catalog.

A collection is written as a JSON array whose elements are the per-entity
records, each one itself encoded as a compact JSON string. Decoding accepts
either string elements or plain objects, so a hand-formatted export still loads.
"""

from __future__ import annotations
import json
from typing import Any, Iterable, List, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

M = TypeVar("M", bound=BaseModel)

# Compact form, no spaces, non-ASCII kept as-is
JSON_SEPARATORS = (",", ":")


class RecordError(ValueError):
    """Raised when serialized input cannot be turned back into domain state."""


def dump_json(value: Any) -> str:
    """Encode `value` in the canonical compact form."""
    return json.dumps(value, separators=JSON_SEPARATORS, ensure_ascii=False)


def encode_records(records: Iterable[BaseModel]) -> str:
    """
    Encode a sequence of pydantic records as a collection string.

    Field order follows the model declaration and aliases are used as keys, so
    re-encoding the same records always gives the same bytes.
    """
    return dump_json([dump_json(r.model_dump(by_alias=True)) for r in records])


def _load(text: Union[str, bytes], what: str) -> Any:
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise RecordError(f"{what} is not valid UTF-8") from e
    if not isinstance(text, str):
        raise RecordError(f"{what} must be text, got {type(text).__name__}")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise RecordError(f"{what} is not valid JSON: {e.msg} (line {e.lineno}, column {e.colno})") from e


def decode_records(text: Union[str, bytes], model: Type[M]) -> List[M]:
    """
    Parse a collection string into a list of validated `model` instances.

    Raises RecordError for anything that is not an array of records matching
    `model`. The index of the offending element is included in the message.
    """
    data = _load(text, "Collection")
    if not isinstance(data, list):
        raise RecordError(f"Collection must be a JSON array, got {type(data).__name__}")

    records: List[M] = []
    for index, element in enumerate(data):
        if isinstance(element, str):
            element = _load(element, f"Record #{index}")
        if not isinstance(element, dict):
            raise RecordError(f"Record #{index} must be an object, got {type(element).__name__}")
        try:
            records.append(model.model_validate(element))
        except ValidationError as e:
            raise RecordError(f"Record #{index} is invalid: {e}") from e
    return records


def format_number(value: Union[int, float]) -> str:
    """Render a price/quantity without a trailing '.0' for integral values."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
