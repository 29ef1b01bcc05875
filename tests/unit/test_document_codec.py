import pytest

from webarchivum.core.errors import DocumentFormatError
from webarchivum.infrastructure.plist.document_codec import (
    decode_document,
    detect_format,
    encode_document_binary,
    encode_document_xml,
)


def test_both_encodings_decode_to_the_same_document() -> None:
    document = {"b": [b"\x00\x01", "text"], "a": {"nested": b""}}

    assert decode_document(encode_document_xml(document)) == document
    assert decode_document(encode_document_binary(document)) == document


def test_key_order_is_preserved_in_xml() -> None:
    encoded = encode_document_xml({"zeta": "1", "alpha": "2"}).decode("utf-8")
    assert encoded.index("zeta") < encoded.index("alpha")


def test_detect_format() -> None:
    assert detect_format(encode_document_binary({"a": "b"})) == "binary"
    assert detect_format(encode_document_xml({"a": "b"})) == "xml"
    assert detect_format(b"GIF89a") is None


def test_garbage_is_rejected() -> None:
    with pytest.raises(DocumentFormatError):
        decode_document(b"bplist00 truncated")
