from __future__ import annotations

import binascii
import plistlib
from typing import Any
from xml.parsers.expat import ExpatError

from webarchivum.core.errors import DocumentFormatError, EncodingError

_BINARY_MAGIC = b"bplist00"


def detect_format(raw: bytes) -> str | None:
    """Return ``"binary"``, ``"xml"`` or ``None`` by sniffing the header."""
    if raw.startswith(_BINARY_MAGIC):
        return "binary"
    head = raw[:64].lstrip(b"\xef\xbb\xbf \t\r\n")
    if head.startswith(b"<?xml") or head.startswith(b"<plist") or head.startswith(b"<!DOCTYPE"):
        return "xml"
    return None


def decode_document(raw: bytes) -> Any:
    if not raw:
        raise DocumentFormatError("Input is empty")
    try:
        return plistlib.loads(raw)
    except binascii.Error as exc:
        raise EncodingError(f"Malformed base64 in <data> element: {exc}") from exc
    except (plistlib.InvalidFileException, ExpatError, ValueError, KeyError, IndexError) as exc:
        raise DocumentFormatError(f"Input is not a valid property list: {exc}") from exc


def encode_document_xml(document: Any) -> bytes:
    return plistlib.dumps(document, fmt=plistlib.FMT_XML, sort_keys=False)


def encode_document_binary(document: Any) -> bytes:
    return plistlib.dumps(document, fmt=plistlib.FMT_BINARY, sort_keys=False)
