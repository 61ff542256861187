"""
onchain_upload.content.decoder
==============================

Turn a user-supplied file into a canonical ``(mime_type, bytes)`` pair.

Accepted inputs, first match wins:

1. Text, optionally prefixed with the literal marker ``string:`` (as printed by
   block explorers for ``string`` return values).
2. ``data:<mime>[;charset=..];base64,<payload>`` URIs. When the declared MIME is
   JSON the payload must be an object whose ``image`` field is itself a data
   URI; that inner URI is the image. This is the shape of an on-chain
   ``tokenURI`` answer.
3. Anything else is raw binary: ``image/svg+xml`` when ``<svg`` appears in the
   first 200 bytes, ``image/png`` otherwise.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..errors import DecodeError

STRING_MARKER = "string:"
SNIFF_BYTES = 200

MIME_PNG = "image/png"
MIME_SVG = "image/svg+xml"

_DATA_URI_RE = re.compile(
    r"^data:([^;,]+)(?:;charset=[^;,]+)?;base64,(.+)$", re.IGNORECASE | re.DOTALL
)


@dataclass(frozen=True)
class ContentDescriptor:
    """Decoded payload; immutable once produced."""

    mime_type: str
    data: bytes

    def __len__(self) -> int:
        return len(self.data)

    def view(self) -> memoryview:
        """Zero-copy, read-only view for slicing chunks."""
        return memoryview(self.data).toreadonly()

    def with_mime(self, mime_type: Optional[str]) -> "ContentDescriptor":
        if not mime_type:
            return self
        return ContentDescriptor(mime_type=mime_type, data=self.data)


def decode_data_uri(text: str) -> Optional[ContentDescriptor]:
    """
    Decode a base64 data URI. Returns None when `text` is not a data URI;
    raises DecodeError when it is one but the payload is not valid base64.
    """
    m = _DATA_URI_RE.match(text.strip())
    if not m:
        return None
    mime, payload = m.group(1).strip(), re.sub(r"\s+", "", m.group(2))
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"invalid base64 payload in data URI ({mime})") from e
    return ContentDescriptor(mime_type=mime, data=data)


def _is_json(mime: str) -> bool:
    return "application/json" in mime.lower()


def _from_json_metadata(raw: bytes, path: str) -> ContentDescriptor:
    try:
        meta = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError("JSON metadata is not valid JSON", path=path) from e
    if not isinstance(meta, dict):
        raise DecodeError("JSON metadata is not an object", path=path)
    image = meta.get("image")
    if not image:
        raise DecodeError("JSON metadata has no 'image'", path=path)
    if not isinstance(image, str):
        raise DecodeError("'image' field is not a string", path=path)
    inner = decode_data_uri(image)
    if inner is None:
        raise DecodeError("'image' field is not a data URI", path=path)
    return inner


def _sniff_mime(data: bytes) -> str:
    head = data[:SNIFF_BYTES].decode("utf-8", errors="ignore")
    return MIME_SVG if "<svg" in head else MIME_PNG


def decode(path: Union[str, Path], mime_override: Optional[str] = None) -> ContentDescriptor:
    """
    Read `path` and return its ContentDescriptor.

    `mime_override` replaces the detected MIME type without altering the bytes.
    """
    p = Path(path)
    try:
        raw = p.read_bytes()
    except OSError as e:
        raise DecodeError(f"cannot read file: {e.strerror or e}", path=str(p)) from e

    desc: Optional[ContentDescriptor] = None
    try:
        text = raw.decode("utf-8").strip()
    except UnicodeDecodeError:
        text = None

    if text is not None:
        if text.startswith(STRING_MARKER):
            text = text[len(STRING_MARKER):].strip()
        if text.lower().startswith("data:"):
            try:
                first = decode_data_uri(text)
            except DecodeError as e:
                e.path = str(p)
                raise
            if first is None:
                raise DecodeError("unrecognized data URI", path=str(p))
            desc = _from_json_metadata(first.data, str(p)) if _is_json(first.mime_type) else first

    if desc is None:
        desc = ContentDescriptor(mime_type=_sniff_mime(raw), data=raw)
    return desc.with_mime(mime_override)


__all__ = [
    "ContentDescriptor",
    "decode",
    "decode_data_uri",
    "MIME_PNG",
    "MIME_SVG",
]
