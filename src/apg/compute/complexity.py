"""Complexity summaries of API specs."""

from __future__ import annotations

from typing import Any

from apg import mime
from apg.compute.documents import load_document, scan_zipped_protos
from apg.compute.messages import Complexity
from apg.errors import UnsupportedMimeTypeError
from apg.visitor import SpecContents

__all__ = [
    "compute_complexity",
    "summarize_discovery",
    "summarize_openapi_v2",
    "summarize_openapi_v3",
    "summarize_zipped_protos",
]

_OPERATIONS = {
    "get": "get_count",
    "post": "post_count",
    "put": "put_count",
    "delete": "delete_count",
}
_DISCOVERY_OPERATIONS = {verb.upper(): counter for verb, counter in _OPERATIONS.items()}


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _summarize_schema(summary: Any, schema: Any) -> None:
    summary.schema_count += 1
    for value in _mapping(_mapping(schema).get("properties")).values():
        summary.schema_property_count += 1
        _summarize_schema(summary, value)


def _summarize_paths(summary: Any, paths: Any) -> None:
    for path, item in _mapping(paths).items():
        if str(path).startswith("x-"):
            continue
        summary.path_count += 1
        item = _mapping(item)
        for verb, counter in _OPERATIONS.items():
            if item.get(verb) is not None:
                setattr(summary, counter, getattr(summary, counter) + 1)


def summarize_openapi_v2(document: dict[str, Any]) -> Any:
    summary = Complexity()
    for schema in _mapping(document.get("definitions")).values():
        _summarize_schema(summary, schema)
    _summarize_paths(summary, document.get("paths"))
    return summary


def summarize_openapi_v3(document: dict[str, Any]) -> Any:
    summary = Complexity()
    schemas = _mapping(_mapping(document.get("components")).get("schemas"))
    for schema in schemas.values():
        _summarize_schema(summary, schema)
    _summarize_paths(summary, document.get("paths"))
    return summary


def summarize_discovery(document: dict[str, Any]) -> Any:
    """Summarize a Discovery document.

    Only top-level ``methods`` count as paths; methods under ``resources`` are
    not counted.
    """
    summary = Complexity()
    for schema in _mapping(document.get("schemas")).values():
        _summarize_schema(summary, schema)
    for method in _mapping(document.get("methods")).values():
        summary.path_count += 1
        counter = _DISCOVERY_OPERATIONS.get(_mapping(method).get("httpMethod"))
        if counter is not None:
            setattr(summary, counter, getattr(summary, counter) + 1)
    return summary


def summarize_zipped_protos(name: str, data: bytes) -> Any:
    """Summarize a zip archive of .proto files.

    Each rpc counts as a path; its ``google.api.http`` verb, if any, counts as
    an operation. Messages (including nested ones) count as schemas and their
    fields as schema properties.
    """
    protos = scan_zipped_protos(name, data)
    summary = Complexity(
        path_count=len(protos.rpcs),
        schema_count=len(protos.messages),
        schema_property_count=len(protos.fields),
    )
    for verb in protos.http_methods:
        counter = _OPERATIONS.get(verb)
        if counter is not None:
            setattr(summary, counter, getattr(summary, counter) + 1)
    return summary


def compute_complexity(contents: SpecContents) -> Any:
    """Dispatch on the spec's mime type and return a Complexity message.

    Raises:
        UnsupportedMimeTypeError: If no summarizer handles the mime type.
        SpecParseError: If the contents cannot be parsed.
    """
    mime_type = contents.mime_type
    if mime.is_openapi_v2(mime_type):
        return summarize_openapi_v2(load_document(contents.name, contents.data))
    if mime.is_openapi_v3(mime_type):
        return summarize_openapi_v3(load_document(contents.name, contents.data))
    if mime.is_discovery(mime_type):
        return summarize_discovery(load_document(contents.name, contents.data))
    if mime.is_proto(mime_type) and mime.is_zip_archive(mime_type):
        return summarize_zipped_protos(contents.name, contents.data)
    raise UnsupportedMimeTypeError(contents.name, mime_type)
