"""Loading spec documents: YAML/JSON documents and zip archives of .proto files."""

from __future__ import annotations

import io
import re
import zipfile
from dataclasses import dataclass, field
from typing import Any

import yaml

from apg.errors import SpecParseError

__all__ = [
    "ProtoSummary",
    "load_document",
    "read_zipped_protos",
    "scan_proto",
    "scan_zipped_protos",
]


def load_document(name: str, data: bytes) -> dict[str, Any]:
    """Parse a YAML or JSON document into a mapping.

    Raises:
        SpecParseError: If the bytes are not a YAML/JSON mapping.
    """
    try:
        document = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise SpecParseError(name, str(e), cause=e) from e
    if not isinstance(document, dict):
        raise SpecParseError(name, "document is not a mapping")
    return document


def read_zipped_protos(name: str, data: bytes) -> list[tuple[str, str]]:
    """Return ``(path, text)`` for every .proto file in a zip archive."""
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise SpecParseError(name, str(e), cause=e) from e
    with archive:
        return [
            (info.filename, archive.read(info).decode("utf-8", errors="replace"))
            for info in archive.infolist()
            if info.filename.endswith(".proto") and not info.is_dir()
        ]


@dataclass
class ProtoSummary:
    """Names found in .proto sources."""

    messages: list[str] = field(default_factory=list)
    fields: list[str] = field(default_factory=list)
    rpcs: list[str] = field(default_factory=list)
    http_methods: list[str] = field(default_factory=list)


_COMMENTS = re.compile(r"//[^\n]*|/\*.*?\*/", re.DOTALL)
_TOKENS = re.compile(
    r'"(?:[^"\\]|\\.)*"'
    r"|'(?:[^'\\]|\\.)*'"
    r"|[A-Za-z_][\w.]*|\d+|[{}()\[\];=<>,:]"
)
_HTTP_VERBS = {"get", "post", "put", "delete", "patch"}
_NON_FIELD_STATEMENTS = {
    "option",
    "reserved",
    "extensions",
    "extend",
    "message",
    "enum",
    "oneof",
    "map_entry",
}


def scan_proto(text: str, summary: ProtoSummary | None = None) -> ProtoSummary:
    """Collect message, field and rpc names from one .proto file.

    This is a lexical scan, not a full parser: it tracks block nesting and
    statement starts, which is enough to count declarations.
    """
    summary = summary if summary is not None else ProtoSummary()
    tokens = _TOKENS.findall(_COMMENTS.sub(" ", text))
    stack: list[str] = []
    statement: list[str] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        top = stack[-1] if stack else ""
        if tok == "{":
            head = statement[0] if statement else ""
            if head in ("message", "enum", "service", "oneof", "rpc"):
                stack.append(head)
                if head == "message" and len(statement) > 1:
                    summary.messages.append(statement[1])
            else:
                stack.append("block")
            statement = []
        elif tok == "}":
            if stack:
                stack.pop()
            statement = []
        elif tok == ";":
            head = statement[0] if statement else ""
            is_field = head not in _NON_FIELD_STATEMENTS and "=" in statement
            if top in ("message", "oneof") and is_field:
                eq = statement.index("=")
                if eq >= 2:
                    summary.fields.append(statement[eq - 1])
            statement = []
        else:
            following = tokens[i + 1] if i + 1 < len(tokens) else None
            if tok in _HTTP_VERBS and top == "block" and "rpc" in stack:
                if following == ":":
                    summary.http_methods.append(tok)
            if tok == "rpc" and not statement and top == "service" and following:
                summary.rpcs.append(following)
            statement.append(tok)
        i += 1
    return summary


def scan_zipped_protos(name: str, data: bytes) -> ProtoSummary:
    summary = ProtoSummary()
    for _path, text in read_zipped_protos(name, data):
        scan_proto(text, summary)
    return summary
