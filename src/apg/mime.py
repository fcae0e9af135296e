"""Mime type helpers for spec and artifact contents."""

from __future__ import annotations

import re

from apg.errors import InvalidInputError

__all__ = [
    "openapi_mime_type",
    "protobuf_mime_type",
    "is_openapi_v2",
    "is_openapi_v3",
    "is_discovery",
    "is_proto",
    "is_gzip_compressed",
    "gunzipped_type",
    "gzipped_type",
    "is_zip_archive",
    "mime_type_for_message_type",
    "message_type_for_mime_type",
]

_MESSAGE_TYPE = re.compile(r"^application/(?:octet-stream|yaml);type=(.*)$")


def openapi_mime_type(compression: str, version: str) -> str:
    return f"application/x.openapi{compression};version={version}"


def protobuf_mime_type(compression: str) -> str:
    return f"application/x.protobuf{compression}"


def is_openapi_v2(mime_type: str) -> bool:
    return "openapi" in mime_type and "version=2" in mime_type


def is_openapi_v3(mime_type: str) -> bool:
    return "openapi" in mime_type and "version=3" in mime_type


def is_discovery(mime_type: str) -> bool:
    return "discovery" in mime_type


def is_proto(mime_type: str) -> bool:
    return "proto" in mime_type


def is_gzip_compressed(mime_type: str) -> bool:
    return "+gzip" in mime_type


def gunzipped_type(mime_type: str) -> str:
    return mime_type.replace("+gzip", "", 1)


def gzipped_type(mime_type: str) -> str:
    """Mark a mime type as gzip-compressed.

    ``application/x.openapi;version=3`` becomes
    ``application/x.openapi+gzip;version=3``.
    """
    if is_gzip_compressed(mime_type):
        return mime_type
    base, sep, params = mime_type.partition(";")
    return f"{base}+gzip{sep}{params}"


def is_zip_archive(mime_type: str) -> bool:
    return "+zip" in mime_type


def mime_type_for_message_type(message_type: str) -> str:
    return f"application/octet-stream;type={message_type}"


def message_type_for_mime_type(mime_type: str) -> str:
    """Extract the message type from an artifact mime type.

    Raises:
        InvalidInputError: If the mime type does not name a message type.
    """
    m = _MESSAGE_TYPE.match(mime_type)
    if m is None or not m.group(1):
        raise InvalidInputError(f"invalid Protocol Buffer type: {mime_type}")
    return m.group(1).removesuffix("+gzip")