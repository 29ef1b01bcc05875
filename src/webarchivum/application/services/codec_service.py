from __future__ import annotations

import enum
import logging
from pathlib import Path
from typing import Any, BinaryIO

from webarchivum.core.config import ArchiveSettings
from webarchivum.core.errors import ArchiveIOError, DocumentError, EncodingError, SchemaError
from webarchivum.domain.models.webarchive import WebArchive, WebResource
from webarchivum.infrastructure.plist.document_codec import (
    decode_document,
    encode_document_binary,
    encode_document_xml,
)

logger = logging.getLogger(__name__)

MAIN_RESOURCE_KEY = "WebMainResource"
SUBRESOURCES_KEY = "WebSubresources"
SUBFRAME_ARCHIVES_KEY = "WebSubframeArchives"

DATA_KEY = "WebResourceData"
URL_KEY = "WebResourceURL"
FRAME_NAME_KEY = "WebResourceFrameName"
MIME_TYPE_KEY = "WebResourceMIMEType"
TEXT_ENCODING_KEY = "WebResourceTextEncodingName"
RESPONSE_KEY = "WebResourceResponse"

ARCHIVE_KEYS = frozenset({MAIN_RESOURCE_KEY, SUBRESOURCES_KEY, SUBFRAME_ARCHIVES_KEY})
RESOURCE_KEYS = frozenset({DATA_KEY, URL_KEY, FRAME_NAME_KEY, MIME_TYPE_KEY, TEXT_ENCODING_KEY, RESPONSE_KEY})


class ArchiveFormat(str, enum.Enum):
    BINARY = "binary"
    XML = "xml"


def decode_optional_string_empty_as_none(value: Any, location: str) -> str | None:
    """Decode an optional string field, treating ``""`` as absent.

    Some writers cannot omit a key and store an empty string for "no value".
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise SchemaError(f"expected a string, got {type(value).__name__}", location)
    return value or None


def encode_optional_string(document: dict[str, Any], key: str, value: str | None, always_emit: bool) -> None:
    if value is not None:
        document[key] = value
    elif always_emit:
        document[key] = ""


def _join(location: str, key: str) -> str:
    return f"{location}.{key}" if location else key


class CodecService:
    """Maps ``WebArchive`` trees to and from property-list documents."""

    def __init__(self, settings: ArchiveSettings | None = None) -> None:
        self.settings = settings or ArchiveSettings()

    # -- decoding -----------------------------------------------------------

    def decode_archive(self, document: Any, location: str = "") -> WebArchive:
        return self._decode_archive(document, location, frozenset())

    def _decode_archive(self, document: Any, location: str, ancestors: frozenset[int]) -> WebArchive:
        if not isinstance(document, dict):
            raise SchemaError(
                f"expected a dictionary for a web archive, got {type(document).__name__}",
                location or "<root>",
            )
        # Binary plists can reference an enclosing dictionary, which plistlib
        # returns as the same object.
        if id(document) in ancestors:
            raise SchemaError("cyclic reference to an enclosing archive", location or "<root>")
        ancestors = ancestors | {id(document)}
        self._reject_unknown_keys(document, ARCHIVE_KEYS, location or "<root>")

        if MAIN_RESOURCE_KEY not in document:
            raise SchemaError(f"missing required key {MAIN_RESOURCE_KEY}", location or "<root>")
        main_resource = self.decode_resource(document[MAIN_RESOURCE_KEY], _join(location, MAIN_RESOURCE_KEY))

        subresources = None
        if SUBRESOURCES_KEY in document:
            items = self._expect_list(document[SUBRESOURCES_KEY], _join(location, SUBRESOURCES_KEY))
            subresources = tuple(
                self.decode_resource(item, f"{_join(location, SUBRESOURCES_KEY)}[{index}]")
                for index, item in enumerate(items)
            )

        subframe_archives = None
        if SUBFRAME_ARCHIVES_KEY in document:
            items = self._expect_list(document[SUBFRAME_ARCHIVES_KEY], _join(location, SUBFRAME_ARCHIVES_KEY))
            subframe_archives = tuple(
                self._decode_archive(item, f"{_join(location, SUBFRAME_ARCHIVES_KEY)}[{index}]", ancestors)
                for index, item in enumerate(items)
            )

        return WebArchive(
            main_resource=main_resource,
            subresources=subresources,
            subframe_archives=subframe_archives,
        )

    def decode_resource(self, document: Any, location: str) -> WebResource:
        if not isinstance(document, dict):
            raise SchemaError(f"expected a dictionary for a web resource, got {type(document).__name__}", location)
        self._reject_unknown_keys(document, RESOURCE_KEYS, location)

        if URL_KEY not in document:
            raise SchemaError(f"missing required key {URL_KEY}", location)
        url = document[URL_KEY]
        if not isinstance(url, str):
            raise SchemaError(f"expected a string, got {type(url).__name__}", _join(location, URL_KEY))
        where = f"{location} ({url})"

        if DATA_KEY not in document:
            raise SchemaError(f"missing required key {DATA_KEY}", where)
        data = self._expect_bytes(document[DATA_KEY], _join(location, DATA_KEY), url)

        mime_type = document.get(MIME_TYPE_KEY)
        if mime_type is None:
            if self.settings.require_mime_type:
                raise SchemaError(f"missing required key {MIME_TYPE_KEY}", where)
        elif not isinstance(mime_type, str):
            raise SchemaError(f"expected a string, got {type(mime_type).__name__}", _join(location, MIME_TYPE_KEY))

        response = None
        if RESPONSE_KEY in document:
            response = self._expect_bytes(document[RESPONSE_KEY], _join(location, RESPONSE_KEY), url)

        return WebResource(
            data=data,
            url=url,
            mime_type=mime_type,
            text_encoding_name=decode_optional_string_empty_as_none(
                document.get(TEXT_ENCODING_KEY), _join(location, TEXT_ENCODING_KEY)
            ),
            frame_name=decode_optional_string_empty_as_none(
                document.get(FRAME_NAME_KEY), _join(location, FRAME_NAME_KEY)
            ),
            response=response,
        )

    @staticmethod
    def _reject_unknown_keys(document: dict[Any, Any], allowed: frozenset[str], location: str) -> None:
        unknown = [key for key in document if key not in allowed]
        if unknown:
            names = ", ".join(repr(key) for key in unknown)
            raise SchemaError(f"unknown key(s) {names}", location)

    @staticmethod
    def _expect_list(value: Any, location: str) -> list[Any]:
        if not isinstance(value, list):
            raise SchemaError(f"expected an array, got {type(value).__name__}", location)
        return value

    @staticmethod
    def _expect_bytes(value: Any, location: str, url: str) -> bytes:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        raise EncodingError(f"expected binary data for {url}, got {type(value).__name__}", location)

    # -- encoding -----------------------------------------------------------

    def encode_archive(self, archive: WebArchive) -> dict[str, Any]:
        document: dict[str, Any] = {MAIN_RESOURCE_KEY: self.encode_resource(archive.main_resource)}
        if archive.subresources is not None:
            document[SUBRESOURCES_KEY] = [self.encode_resource(item) for item in archive.subresources]
        if archive.subframe_archives is not None:
            document[SUBFRAME_ARCHIVES_KEY] = [self.encode_archive(item) for item in archive.subframe_archives]
        return document

    def encode_resource(self, resource: WebResource) -> dict[str, Any]:
        always_emit = self.settings.emit_empty_optional_strings
        document: dict[str, Any] = {
            DATA_KEY: bytes(resource.data),
            URL_KEY: resource.url,
        }
        encode_optional_string(document, FRAME_NAME_KEY, resource.frame_name, always_emit)
        if resource.mime_type is not None:
            document[MIME_TYPE_KEY] = resource.mime_type
        encode_optional_string(document, TEXT_ENCODING_KEY, resource.text_encoding_name, always_emit)
        if resource.response is not None:
            document[RESPONSE_KEY] = bytes(resource.response)
        return document

    # -- physical forms -----------------------------------------------------

    def loads(self, raw: bytes, source: Path | None = None) -> WebArchive:
        try:
            return self.decode_archive(decode_document(raw))
        except RecursionError as exc:
            raise SchemaError("archive nesting is too deep", source=source) from exc
        except DocumentError as exc:
            if source is None:
                raise
            raise exc.with_source(source) from exc

    def load_stream(self, fp: BinaryIO) -> WebArchive:
        return self.loads(fp.read())

    @staticmethod
    def read_file(path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ArchiveIOError(f"Could not read web archive: {exc.strerror or exc}", path=path) from exc

    def load(self, path: Path) -> WebArchive:
        raw = self.read_file(path)
        logger.debug("Decoding %s (%d bytes)", path, len(raw))
        return self.loads(raw, source=path)

    def dumps(self, archive: WebArchive, fmt: ArchiveFormat | str | None = None) -> bytes:
        chosen = ArchiveFormat(fmt or self.settings.default_format)
        document = self.encode_archive(archive)
        if chosen is ArchiveFormat.XML:
            return encode_document_xml(document)
        return encode_document_binary(document)

    def dump_stream(self, archive: WebArchive, fp: BinaryIO, fmt: ArchiveFormat | str | None = None) -> int:
        encoded = self.dumps(archive, fmt)
        fp.write(encoded)
        return len(encoded)

    def dump(self, archive: WebArchive, path: Path, fmt: ArchiveFormat | str | None = None) -> int:
        encoded = self.dumps(archive, fmt)
        try:
            path.write_bytes(encoded)
        except OSError as exc:
            raise ArchiveIOError(f"Could not write web archive: {exc.strerror or exc}", path=path) from exc
        logger.debug("Wrote %s (%d bytes)", path, len(encoded))
        return len(encoded)
