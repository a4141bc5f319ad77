"""reqchain payload - request body variants and their wire encodings."""

import json
import mimetypes
import os
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from numbers import Number
from typing import Any
from urllib.parse import urlencode

from urllib3 import encode_multipart_formdata


@dataclass(frozen=True)
class StructPayload:
    """Key/value mapping, sent as JSON or URL-encoded form."""

    data: dict[str, Any]


@dataclass(frozen=True)
class BytesPayload:
    data: bytes


@dataclass(frozen=True)
class TextPayload:
    text: str


@dataclass(frozen=True)
class FilePayload:
    """Multipart upload of `path` under form field `field`.

    `fields` are written as extra form fields after the file part.
    """

    field: str
    path: str
    fields: dict[str, Any] = dataclass_field(default_factory=dict)


Payload = StructPayload | BytesPayload | TextPayload | FilePayload


# ── URL-encoded form ─────────────────────────────────────────────────────


def form_values(value: Any) -> list[str]:
    """Return the form values for one mapping entry.

    - str -> [value]
    - sequence of str -> one value per element (repeated key)
    - number -> [decimal string]
    - anything else (bool, None, dict, mixed list) -> [] (dropped)
    """
    if isinstance(value, str):
        return [value]
    if isinstance(value, list | tuple):
        if all(isinstance(v, str) for v in value):
            return list(value)
        return []
    # bool is a Number subclass but not a number in the form sense
    if isinstance(value, bool):
        return []
    if isinstance(value, Number):
        return [str(value)]
    return []


def encode_form(data: dict[str, Any]) -> str:
    """URL-encode a mapping, keys sorted, multi-values kept in order."""
    pairs = [(key, v) for key in sorted(data) for v in form_values(data[key])]
    return urlencode(pairs)


# ── Multipart ────────────────────────────────────────────────────────────


def _field_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def encode_multipart(payload: FilePayload) -> tuple[bytes, str]:
    """Build a multipart/form-data body for a file upload.

    Returns (body, content_type). Raises OSError if the file can't be read.
    """
    with open(payload.path, "rb") as fh:
        content = fh.read()

    filename = os.path.basename(payload.path)
    mime = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    parts: list[tuple[str, Any]] = [(payload.field, (filename, content, mime))]
    for key, value in payload.fields.items():
        parts.append((key, _field_text(value)))

    return encode_multipart_formdata(parts)
