"""Protocol buffer messages stored in computed artifacts.

The message classes are built from descriptors in a private pool so that the
wire format and fully-qualified names match what other registry tools read
and write.
"""

from __future__ import annotations

from google.protobuf import (
    descriptor_pb2,
    descriptor_pool,
    json_format,
    message_factory,
)
from google.protobuf.message import Message

from apg import mime

__all__ = [
    "COMPLEXITY_TYPE",
    "VOCABULARY_TYPE",
    "LINT_TYPE",
    "LINTSTATS_TYPE",
    "TAXONOMY_LIST_TYPE",
    "ARTIFACT_TYPES",
    "Complexity",
    "WordCount",
    "Vocabulary",
    "Lint",
    "LintFile",
    "LintProblem",
    "LintLocation",
    "LintPosition",
    "LinterRequest",
    "LinterResponse",
    "LintStats",
    "LintProblemCount",
    "TaxonomyList",
    "artifact_message_class",
    "artifact_mime_type",
    "to_json",
]

COMPLEXITY_TYPE = "gnostic.metrics.Complexity"
VOCABULARY_TYPE = "gnostic.metrics.Vocabulary"
LINT_TYPE = "google.cloud.apigeeregistry.v1.style.Lint"
LINTSTATS_TYPE = "google.cloud.apigeeregistry.v1.style.LintStats"
TAXONOMY_LIST_TYPE = "google.cloud.apigeeregistry.v1.apihub.TaxonomyList"

_F = descriptor_pb2.FieldDescriptorProto
_OPTIONAL = _F.LABEL_OPTIONAL
_REPEATED = _F.LABEL_REPEATED


def _json_name(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _message(
    name: str,
    fields: list[tuple[str, int, int, int, str]],
    nested: list[descriptor_pb2.DescriptorProto] | None = None,
) -> descriptor_pb2.DescriptorProto:
    message = descriptor_pb2.DescriptorProto(name=name)
    message.nested_type.extend(nested or [])
    for field_name, number, field_type, label, type_name in fields:
        field = message.field.add(
            name=field_name,
            number=number,
            type=field_type,
            label=label,
            json_name=_json_name(field_name),
        )
        if type_name:
            field.type_name = type_name
    return message


def _file(
    name: str, package: str, messages: list[descriptor_pb2.DescriptorProto]
) -> descriptor_pb2.FileDescriptorProto:
    file = descriptor_pb2.FileDescriptorProto(
        name=name, package=package, syntax="proto3"
    )
    file.message_type.extend(messages)
    return file


_INT32 = _F.TYPE_INT32
_STRING = _F.TYPE_STRING
_MESSAGE = _F.TYPE_MESSAGE
_BOOL = _F.TYPE_BOOL

_WORD_COUNT = ".gnostic.metrics.WordCount"

_METRICS_FILES = [
    _file(
        "metrics/complexity.proto",
        "gnostic.metrics",
        [
            _message(
                "Complexity",
                [
                    ("path_count", 1, _INT32, _OPTIONAL, ""),
                    ("get_count", 2, _INT32, _OPTIONAL, ""),
                    ("post_count", 3, _INT32, _OPTIONAL, ""),
                    ("put_count", 4, _INT32, _OPTIONAL, ""),
                    ("delete_count", 5, _INT32, _OPTIONAL, ""),
                    ("schema_count", 6, _INT32, _OPTIONAL, ""),
                    ("schema_property_count", 7, _INT32, _OPTIONAL, ""),
                ],
            )
        ],
    ),
    _file(
        "metrics/vocabulary.proto",
        "gnostic.metrics",
        [
            _message(
                "WordCount",
                [
                    ("word", 1, _STRING, _OPTIONAL, ""),
                    ("count", 2, _INT32, _OPTIONAL, ""),
                ],
            ),
            _message(
                "Vocabulary",
                [
                    ("schemas", 1, _MESSAGE, _REPEATED, _WORD_COUNT),
                    ("properties", 2, _MESSAGE, _REPEATED, _WORD_COUNT),
                    ("operations", 3, _MESSAGE, _REPEATED, _WORD_COUNT),
                    ("parameters", 4, _MESSAGE, _REPEATED, _WORD_COUNT),
                ],
            ),
        ],
    ),
]

_STYLE = ".google.cloud.apigeeregistry.v1.style"
_POSITION = f"{_STYLE}.LintPosition"
_PROBLEM_COUNT = f"{_STYLE}.LintProblemCount"

_STYLE_FILES = [
    _file(
        "google/cloud/apigeeregistry/v1/style/lint.proto",
        "google.cloud.apigeeregistry.v1.style",
        [
            _message(
                "Lint",
                [
                    ("name", 1, _STRING, _OPTIONAL, ""),
                    ("files", 2, _MESSAGE, _REPEATED, f"{_STYLE}.LintFile"),
                ],
            ),
            _message(
                "LintFile",
                [
                    ("file_path", 1, _STRING, _OPTIONAL, ""),
                    ("problems", 2, _MESSAGE, _REPEATED, f"{_STYLE}.LintProblem"),
                ],
            ),
            _message(
                "LintProblem",
                [
                    ("message", 1, _STRING, _OPTIONAL, ""),
                    ("rule_id", 2, _STRING, _OPTIONAL, ""),
                    ("rule_doc_uri", 3, _STRING, _OPTIONAL, ""),
                    ("suggestion", 4, _STRING, _OPTIONAL, ""),
                    ("location", 5, _MESSAGE, _OPTIONAL, f"{_STYLE}.LintLocation"),
                ],
            ),
            _message(
                "LintLocation",
                [
                    ("start_position", 1, _MESSAGE, _OPTIONAL, _POSITION),
                    ("end_position", 2, _MESSAGE, _OPTIONAL, _POSITION),
                ],
            ),
            _message(
                "LintPosition",
                [
                    ("line_number", 1, _INT32, _OPTIONAL, ""),
                    ("column_number", 2, _INT32, _OPTIONAL, ""),
                ],
            ),
            _message(
                "LinterRequest",
                [
                    ("spec_directory", 1, _STRING, _OPTIONAL, ""),
                    ("rule_ids", 2, _STRING, _REPEATED, ""),
                ],
            ),
            _message(
                "LinterResponse",
                [
                    ("errors", 1, _STRING, _REPEATED, ""),
                    ("lint", 2, _MESSAGE, _OPTIONAL, f"{_STYLE}.Lint"),
                ],
            ),
            _message(
                "LintStats",
                [
                    ("problem_counts", 1, _MESSAGE, _REPEATED, _PROBLEM_COUNT),
                    ("operation_count", 2, _INT32, _OPTIONAL, ""),
                    ("schema_count", 3, _INT32, _OPTIONAL, ""),
                ],
            ),
            _message(
                "LintProblemCount",
                [
                    ("count", 1, _INT32, _OPTIONAL, ""),
                    ("rule_id", 2, _STRING, _OPTIONAL, ""),
                    ("rule_doc_uri", 3, _STRING, _OPTIONAL, ""),
                ],
            ),
        ],
    ),
]

_TAXONOMY = ".google.cloud.apigeeregistry.v1.apihub.TaxonomyList.Taxonomy"
_ELEMENT = f"{_TAXONOMY}.Element"

_APIHUB_FILES = [
    _file(
        "google/cloud/apigeeregistry/v1/apihub/taxonomies.proto",
        "google.cloud.apigeeregistry.v1.apihub",
        [
            _message(
                "TaxonomyList",
                [
                    ("id", 1, _STRING, _OPTIONAL, ""),
                    ("kind", 2, _STRING, _OPTIONAL, ""),
                    ("display_name", 3, _STRING, _OPTIONAL, ""),
                    ("description", 4, _STRING, _OPTIONAL, ""),
                    ("taxonomies", 5, _MESSAGE, _REPEATED, _TAXONOMY),
                ],
                nested=[
                    _message(
                        "Taxonomy",
                        [
                            ("id", 1, _STRING, _OPTIONAL, ""),
                            ("display_name", 2, _STRING, _OPTIONAL, ""),
                            ("description", 3, _STRING, _OPTIONAL, ""),
                            ("admin_applied", 4, _BOOL, _OPTIONAL, ""),
                            ("single_selection", 5, _BOOL, _OPTIONAL, ""),
                            ("search_excluded", 6, _BOOL, _OPTIONAL, ""),
                            ("system_managed", 7, _BOOL, _OPTIONAL, ""),
                            ("display_order", 8, _INT32, _OPTIONAL, ""),
                            ("elements", 9, _MESSAGE, _REPEATED, _ELEMENT),
                        ],
                        nested=[
                            _message(
                                "Element",
                                [
                                    ("id", 1, _STRING, _OPTIONAL, ""),
                                    ("display_name", 2, _STRING, _OPTIONAL, ""),
                                    ("description", 3, _STRING, _OPTIONAL, ""),
                                ],
                            )
                        ],
                    )
                ],
            )
        ],
    ),
]

_POOL = descriptor_pool.DescriptorPool()
for _file_proto in [*_METRICS_FILES, *_STYLE_FILES, *_APIHUB_FILES]:
    _POOL.AddSerializedFile(_file_proto.SerializeToString())


def _class(full_name: str) -> type[Message]:
    return message_factory.GetMessageClass(_POOL.FindMessageTypeByName(full_name))


Complexity = _class(COMPLEXITY_TYPE)
WordCount = _class("gnostic.metrics.WordCount")
Vocabulary = _class(VOCABULARY_TYPE)
Lint = _class(LINT_TYPE)
LintFile = _class("google.cloud.apigeeregistry.v1.style.LintFile")
LintProblem = _class("google.cloud.apigeeregistry.v1.style.LintProblem")
LintLocation = _class("google.cloud.apigeeregistry.v1.style.LintLocation")
LintPosition = _class("google.cloud.apigeeregistry.v1.style.LintPosition")
LinterRequest = _class("google.cloud.apigeeregistry.v1.style.LinterRequest")
LinterResponse = _class("google.cloud.apigeeregistry.v1.style.LinterResponse")
LintStats = _class(LINTSTATS_TYPE)
LintProblemCount = _class("google.cloud.apigeeregistry.v1.style.LintProblemCount")
TaxonomyList = _class(TAXONOMY_LIST_TYPE)

# Messages that may be stored as artifacts, by fully-qualified name.
ARTIFACT_TYPES: dict[str, type[Message]] = {
    cls.DESCRIPTOR.full_name: cls
    for cls in (Complexity, Vocabulary, Lint, LintStats, TaxonomyList)
}


def artifact_message_class(kind: str) -> type[Message] | None:
    """Look up an artifact message by full name or by short name.

    Short names are the last component, e.g. ``TaxonomyList``.
    """
    if kind in ARTIFACT_TYPES:
        return ARTIFACT_TYPES[kind]
    for full_name, cls in ARTIFACT_TYPES.items():
        if full_name.rsplit(".", 1)[-1] == kind:
            return cls
    return None


def artifact_mime_type(message: Message) -> str:
    """Artifact mime type for a message.

    For example ``application/octet-stream;type=gnostic.metrics.Complexity``.
    """
    return mime.mime_type_for_message_type(message.DESCRIPTOR.full_name)


def to_json(message: Message) -> str:
    return json_format.MessageToJson(message, indent=2)
