from pathlib import Path

import pytest

from webarchivum.application.services.codec_service import (
    ArchiveFormat,
    CodecService,
    decode_optional_string_empty_as_none,
)
from webarchivum.core.config import ArchiveSettings
from webarchivum.core.errors import DocumentFormatError, EncodingError, SchemaError
from webarchivum.domain.models.webarchive import WebArchive, WebResource


def _resource(url: str, data: bytes = b"", mime_type: str | None = "text/html", **kwargs) -> WebResource:
    return WebResource(data=data, url=url, mime_type=mime_type, **kwargs)


def _nested_archive() -> WebArchive:
    return WebArchive(
        main_resource=_resource(
            "http://psx.example/index.html",
            b"<html><frameset></frameset></html>",
            text_encoding_name="UTF-8",
        ),
        subframe_archives=(
            WebArchive(
                main_resource=_resource(
                    "http://psx.example/banner.html",
                    b"<html>banner</html>",
                    text_encoding_name="UTF-8",
                    frame_name="banner",
                ),
                subresources=(
                    _resource(
                        "http://psx.example/images/texgrey.jpg",
                        b"\xff\xd8\xff\xe0fakejpeg",
                        mime_type="image/jpeg",
                        response=b"bplist00\xd4\x01fake",
                    ),
                    _resource("http://psx.example/empty.css", b"", mime_type="text/css"),
                ),
            ),
            WebArchive(main_resource=_resource("http://psx.example/menu.html", b"<html>menu</html>")),
        ),
    )


def _document(**resource_overrides) -> dict:
    resource = {
        "WebResourceData": b"hello world",
        "WebResourceURL": "about:hello",
        "WebResourceMIMEType": "text/plain",
    }
    resource.update(resource_overrides)
    return {"WebMainResource": resource}


@pytest.mark.parametrize("fmt", [ArchiveFormat.XML, ArchiveFormat.BINARY])
def test_nested_archive_round_trips_in_both_formats(fmt: ArchiveFormat) -> None:
    codec = CodecService()
    archive = _nested_archive()

    decoded = codec.loads(codec.dumps(archive, fmt))

    assert decoded == archive
    assert [child.main_resource.url for child in decoded.subframe_archives] == [
        "http://psx.example/banner.html",
        "http://psx.example/menu.html",
    ]
    assert decoded.subframe_archives[0].subresources[1].data == b""


def test_xml_output_matches_expected_layout() -> None:
    codec = CodecService()
    archive = WebArchive(
        main_resource=_resource("about:hello", b"hello world", mime_type="text/plain", text_encoding_name="utf-8")
    )

    encoded = codec.dumps(archive, ArchiveFormat.XML).decode("utf-8")

    assert encoded.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert "<key>WebMainResource</key>" in encoded
    assert "aGVsbG8gd29ybGQ=" in encoded
    assert encoded.index("WebResourceData") < encoded.index("WebResourceURL") < encoded.index("WebResourceMIMEType")
    assert "WebSubresources" not in encoded
    assert "WebResourceFrameName" not in encoded


def test_binary_output_uses_binary_plist_header() -> None:
    codec = CodecService()
    encoded = codec.dumps(WebArchive(main_resource=_resource("about:blank")), ArchiveFormat.BINARY)
    assert encoded.startswith(b"bplist00")


def test_default_format_comes_from_settings() -> None:
    codec = CodecService(ArchiveSettings(default_format="xml"))
    encoded = codec.dumps(WebArchive(main_resource=_resource("about:blank")))
    assert encoded.startswith(b"<?xml")


def test_empty_optional_strings_decode_as_absent() -> None:
    codec = CodecService()
    archive = codec.decode_archive(_document(WebResourceTextEncodingName="", WebResourceFrameName=""))

    assert archive.main_resource.text_encoding_name is None
    assert archive.main_resource.frame_name is None


def test_optional_string_adapter() -> None:
    assert decode_optional_string_empty_as_none(None, "x") is None
    assert decode_optional_string_empty_as_none("", "x") is None
    assert decode_optional_string_empty_as_none("UTF-8", "x") == "UTF-8"
    with pytest.raises(SchemaError):
        decode_optional_string_empty_as_none(12, "x")


def test_absent_optional_strings_can_be_written_as_empty_strings() -> None:
    codec = CodecService(ArchiveSettings(emit_empty_optional_strings=True))
    archive = WebArchive(main_resource=_resource("about:blank"))

    document = codec.encode_archive(archive)

    assert document["WebMainResource"]["WebResourceTextEncodingName"] == ""
    assert document["WebMainResource"]["WebResourceFrameName"] == ""
    assert codec.decode_archive(document) == archive


def test_missing_lists_are_not_emitted_and_decode_as_absent() -> None:
    codec = CodecService()
    archive = WebArchive(main_resource=_resource("about:blank"))

    document = codec.encode_archive(archive)
    assert set(document) == {"WebMainResource"}

    decoded = codec.loads(codec.dumps(archive, ArchiveFormat.XML))
    assert decoded.subresources is None
    assert decoded.subframe_archives is None


def test_empty_lists_stay_distinct_from_missing_lists() -> None:
    codec = CodecService()
    archive = WebArchive(main_resource=_resource("about:blank"), subresources=())

    document = codec.encode_archive(archive)
    assert document["WebSubresources"] == []

    decoded = codec.loads(codec.dumps(archive, ArchiveFormat.BINARY))
    assert decoded.subresources == ()
    assert decoded != WebArchive(main_resource=_resource("about:blank"))


def test_lists_passed_by_callers_are_stored_as_tuples() -> None:
    archive = WebArchive(main_resource=_resource("about:blank"), subresources=[_resource("about:a")])
    assert isinstance(archive.subresources, tuple)


def test_unknown_top_level_key_is_rejected() -> None:
    document = _document()
    document["WebArchiveVersion"] = 2

    with pytest.raises(SchemaError, match="WebArchiveVersion"):
        CodecService().decode_archive(document)


def test_unknown_key_in_nested_subresource_is_rejected_with_location() -> None:
    codec = CodecService()
    document = codec.encode_archive(_nested_archive())
    document["WebSubframeArchives"][0]["WebSubresources"][1]["WebResourceExpires"] = "never"

    with pytest.raises(SchemaError) as excinfo:
        codec.decode_archive(document)

    assert excinfo.value.location == "WebSubframeArchives[0].WebSubresources[1]"
    assert "WebResourceExpires" in str(excinfo.value)


def test_missing_main_resource_is_rejected() -> None:
    with pytest.raises(SchemaError, match="WebMainResource"):
        CodecService().decode_archive({"WebSubresources": []})


def test_missing_url_is_rejected() -> None:
    document = _document()
    del document["WebMainResource"]["WebResourceURL"]

    with pytest.raises(SchemaError, match="WebResourceURL"):
        CodecService().decode_archive(document)


def test_wrong_container_types_are_rejected() -> None:
    codec = CodecService()

    with pytest.raises(SchemaError):
        codec.decode_archive(["not", "a", "dict"])

    document = _document()
    document["WebSubresources"] = {"WebResourceURL": "about:x"}
    with pytest.raises(SchemaError, match="expected an array"):
        codec.decode_archive(document)

    with pytest.raises(SchemaError, match="expected a string"):
        codec.decode_archive(_document(WebResourceURL=42))


def test_missing_mime_type_is_rejected_by_default() -> None:
    document = _document()
    del document["WebMainResource"]["WebResourceMIMEType"]

    with pytest.raises(SchemaError, match="WebResourceMIMEType"):
        CodecService().decode_archive(document)


def test_missing_mime_type_is_accepted_when_optional() -> None:
    codec = CodecService(ArchiveSettings(require_mime_type=False))
    document = _document()
    del document["WebMainResource"]["WebResourceMIMEType"]

    archive = codec.decode_archive(document)

    assert archive.main_resource.mime_type is None
    assert "WebResourceMIMEType" not in codec.encode_archive(archive)["WebMainResource"]


def test_non_binary_payloads_raise_encoding_error() -> None:
    codec = CodecService()

    with pytest.raises(EncodingError, match="WebResourceData"):
        codec.decode_archive(_document(WebResourceData="aGVsbG8="))

    with pytest.raises(EncodingError, match="WebResourceResponse"):
        codec.decode_archive(_document(WebResourceResponse=["not", "data"]))


def test_malformed_base64_raises_encoding_error() -> None:
    raw = (
        b'<?xml version="1.0" encoding="UTF-8"?>\n'
        b'<plist version="1.0"><dict><key>WebMainResource</key><dict>'
        b"<key>WebResourceData</key><data>abc</data>"
        b"<key>WebResourceURL</key><string>about:blank</string>"
        b"<key>WebResourceMIMEType</key><string>text/plain</string>"
        b"</dict></dict></plist>"
    )

    with pytest.raises(EncodingError):
        CodecService().loads(raw)


def test_non_plist_bytes_raise_document_format_error() -> None:
    with pytest.raises(DocumentFormatError):
        CodecService().loads(b"<html>not an archive</html>")

    with pytest.raises(DocumentFormatError):
        CodecService().loads(b"")


def test_file_round_trip_and_errors_name_the_file(tmp_path: Path) -> None:
    codec = CodecService()
    target = tmp_path / "page.webarchive"
    archive = _nested_archive()

    written = codec.dump(archive, target, ArchiveFormat.XML)

    assert written == target.stat().st_size
    assert codec.load(target) == archive

    broken = tmp_path / "broken.webarchive"
    broken.write_bytes(b"definitely not a plist")
    with pytest.raises(DocumentFormatError) as excinfo:
        codec.load(broken)
    assert excinfo.value.source == broken
    assert str(broken) in str(excinfo.value)


def test_stream_round_trip(tmp_path: Path) -> None:
    codec = CodecService()
    target = tmp_path / "stream.webarchive"
    archive = _nested_archive()

    with target.open("wb") as fh:
        codec.dump_stream(archive, fh, ArchiveFormat.BINARY)
    with target.open("rb") as fh:
        assert codec.load_stream(fh) == archive


def _bplist(objects: list[bytes], top: int = 0) -> bytes:
    out = bytearray(b"bplist00")
    offsets = []
    for obj in objects:
        offsets.append(len(out))
        out += obj
    table_offset = len(out)
    for offset in offsets:
        out += offset.to_bytes(2, "big")
    out += bytes(6) + bytes([2, 1])
    out += len(objects).to_bytes(8, "big") + top.to_bytes(8, "big") + table_offset.to_bytes(8, "big")
    return bytes(out)


def _bplist_string(value: str) -> bytes:
    raw = value.encode("ascii")
    if len(raw) < 15:
        return bytes([0x50 | len(raw)]) + raw
    return bytes([0x5F, 0x10, len(raw)]) + raw


def test_binary_plist_with_cyclic_subframe_is_rejected() -> None:
    raw = _bplist(
        [
            bytes([0xD2, 1, 2, 3, 4]),  # root: {WebMainResource: 3, WebSubframeArchives: 4}
            _bplist_string("WebMainResource"),
            _bplist_string("WebSubframeArchives"),
            bytes([0xD3, 5, 6, 7, 8, 9, 10]),
            bytes([0xA1, 0]),  # [root]
            _bplist_string("WebResourceData"),
            _bplist_string("WebResourceURL"),
            _bplist_string("WebResourceMIMEType"),
            bytes([0x41]) + b"x",
            _bplist_string("about:blank"),
            _bplist_string("text/html"),
        ]
    )

    with pytest.raises(SchemaError) as excinfo:
        CodecService().loads(raw)

    assert "cyclic" in str(excinfo.value)
    assert excinfo.value.location == "WebSubframeArchives[0]"


def test_shared_but_acyclic_subframes_still_decode() -> None:
    codec = CodecService()
    child = codec.encode_archive(WebArchive(main_resource=_resource("about:child")))
    document = codec.encode_archive(WebArchive(main_resource=_resource("about:parent")))
    document["WebSubframeArchives"] = [child, child]

    archive = codec.decode_archive(document)

    assert [frame.main_resource.url for frame in archive.subframe_archives] == ["about:child", "about:child"]
