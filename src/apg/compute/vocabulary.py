"""Vocabularies of API specs.

A vocabulary counts the words used for schemas, properties, operations and
parameters.
"""

from __future__ import annotations

from collections import Counter
from typing import Any

from apg import mime
from apg.compute.documents import load_document, scan_zipped_protos
from apg.compute.messages import Vocabulary, WordCount
from apg.errors import UnsupportedMimeTypeError
from apg.visitor import SpecContents

__all__ = ["compute_vocabulary", "vocabulary_from_counters"]

_VERBS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")


class _Words:
    def __init__(self) -> None:
        self.schemas: Counter[str] = Counter()
        self.properties: Counter[str] = Counter()
        self.operations: Counter[str] = Counter()
        self.parameters: Counter[str] = Counter()

    def schema(self, name: str, schema: Any) -> None:
        self.schemas[name] += 1
        self.schema_properties(schema)

    def schema_properties(self, schema: Any) -> None:
        if not isinstance(schema, dict):
            return
        properties = schema.get("properties")
        if not isinstance(properties, dict):
            return
        for prop, value in properties.items():
            self.properties[prop] += 1
            self.schema_properties(value)

    def parameter_list(self, parameters: Any) -> None:
        if not isinstance(parameters, list):
            return
        for parameter in parameters:
            if isinstance(parameter, dict) and "name" in parameter:
                self.parameters[str(parameter["name"])] += 1

    def message(self) -> Any:
        return vocabulary_from_counters(
            self.schemas, self.properties, self.operations, self.parameters
        )


def _word_counts(counter: Counter[str]) -> list[Any]:
    return [WordCount(word=word, count=counter[word]) for word in sorted(counter)]


def vocabulary_from_counters(
    schemas: Counter[str],
    properties: Counter[str],
    operations: Counter[str],
    parameters: Counter[str],
) -> Any:
    """Build a Vocabulary whose word lists are sorted by word."""
    return Vocabulary(
        schemas=_word_counts(schemas),
        properties=_word_counts(properties),
        operations=_word_counts(operations),
        parameters=_word_counts(parameters),
    )


def _openapi_paths(words: _Words, paths: Any) -> None:
    if not isinstance(paths, dict):
        return
    for path, item in paths.items():
        if str(path).startswith("x-") or not isinstance(item, dict):
            continue
        words.parameter_list(item.get("parameters"))
        for verb in _VERBS:
            operation = item.get(verb)
            if not isinstance(operation, dict):
                continue
            if operation.get("operationId"):
                words.operations[str(operation["operationId"])] += 1
            words.parameter_list(operation.get("parameters"))


def _openapi_v2(document: dict[str, Any]) -> _Words:
    words = _Words()
    definitions = document.get("definitions")
    if isinstance(definitions, dict):
        for name, schema in definitions.items():
            words.schema(name, schema)
    _openapi_paths(words, document.get("paths"))
    return words


def _openapi_v3(document: dict[str, Any]) -> _Words:
    words = _Words()
    components = document.get("components")
    schemas = components.get("schemas") if isinstance(components, dict) else None
    if isinstance(schemas, dict):
        for name, schema in schemas.items():
            words.schema(name, schema)
    _openapi_paths(words, document.get("paths"))
    return words


def _discovery_methods(words: _Words, container: Any) -> None:
    if not isinstance(container, dict):
        return
    methods = container.get("methods")
    if isinstance(methods, dict):
        for name, method in methods.items():
            words.operations[name] += 1
            parameters = method.get("parameters") if isinstance(method, dict) else None
            if isinstance(parameters, dict):
                for parameter in parameters:
                    words.parameters[parameter] += 1
    resources = container.get("resources")
    if isinstance(resources, dict):
        for resource in resources.values():
            _discovery_methods(words, resource)


def _discovery(document: dict[str, Any]) -> _Words:
    words = _Words()
    schemas = document.get("schemas")
    if isinstance(schemas, dict):
        for name, schema in schemas.items():
            words.schema(name, schema)
    _discovery_methods(words, document)
    return words


def _zipped_protos(name: str, data: bytes) -> _Words:
    protos = scan_zipped_protos(name, data)
    words = _Words()
    words.schemas.update(protos.messages)
    words.properties.update(protos.fields)
    words.operations.update(protos.rpcs)
    return words


def compute_vocabulary(contents: SpecContents) -> Any:
    """Dispatch on the spec's mime type and return a Vocabulary message.

    Raises:
        UnsupportedMimeTypeError: If the mime type is not handled.
        SpecParseError: If the contents cannot be parsed.
    """
    mime_type = contents.mime_type
    if mime.is_openapi_v2(mime_type):
        words = _openapi_v2(load_document(contents.name, contents.data))
    elif mime.is_openapi_v3(mime_type):
        words = _openapi_v3(load_document(contents.name, contents.data))
    elif mime.is_discovery(mime_type):
        words = _discovery(load_document(contents.name, contents.data))
    elif mime.is_proto(mime_type) and mime.is_zip_archive(mime_type):
        words = _zipped_protos(contents.name, contents.data)
    else:
        raise UnsupportedMimeTypeError(
            contents.name, mime_type, verb="compute the vocabulary of"
        )
    return words.message()
