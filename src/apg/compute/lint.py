"""Running external linter plugins over specs.

A linter plugin is an executable named ``registry-lint-<linter>`` on PATH. It
reads a serialized ``LinterRequest`` from stdin and writes a serialized
``LinterResponse`` to stdout.
"""

from __future__ import annotations

import io
import logging
import shutil
import subprocess
import tempfile
import zipfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from apg import mime
from apg.compute.messages import LinterRequest, LinterResponse
from apg.errors import LinterError, SpecParseError
from apg.visitor import SpecContents

__all__ = [
    "lint_relation",
    "linter_executable",
    "lint_spec",
    "run_linter",
    "write_spec",
]

logger = logging.getLogger(__name__)


def lint_relation(linter: str) -> str:
    return f"lint-{linter}"


def linter_executable(linter: str) -> str:
    """Find the plugin for ``linter`` on PATH.

    Raises:
        LinterError: If the plugin is not installed.
    """
    name = f"registry-lint-{linter}"
    path = shutil.which(name)
    if path is None:
        raise LinterError(linter, f"{name} not found on PATH")
    return path


def write_spec(root: Path, contents: SpecContents) -> None:
    """Write spec contents under ``root``, unpacking zip archives."""
    if mime.is_zip_archive(contents.mime_type):
        try:
            archive = zipfile.ZipFile(io.BytesIO(contents.data))
        except zipfile.BadZipFile as e:
            raise SpecParseError(contents.name, str(e), cause=e) from e
        with archive:
            base = root.resolve()
            for info in archive.infolist():
                target = (root / info.filename).resolve()
                if not target.is_relative_to(base):
                    raise SpecParseError(
                        contents.name,
                        f"archive entry {info.filename!r} escapes the spec directory",
                    )
            archive.extractall(root)
        return
    if not contents.filename:
        raise SpecParseError(contents.name, "spec has no filename")
    (root / Path(contents.filename).name).write_bytes(contents.data)


def run_linter(
    linter: str, executable: str, spec_directory: str, rule_ids: Sequence[str] = ()
) -> Any:
    """Run a plugin once and return the Lint message from its response.

    Raises:
        LinterError: If the plugin fails or reports errors.
    """
    request = LinterRequest(spec_directory=spec_directory, rule_ids=list(rule_ids))
    completed = subprocess.run(
        [executable],
        input=request.SerializeToString(),
        capture_output=True,
        check=False,
    )
    if completed.returncode != 0:
        stderr = completed.stderr.decode("utf-8", errors="replace").strip()
        raise LinterError(
            linter, f"exited with status {completed.returncode}: {stderr}"
        )
    response = LinterResponse()
    response.ParseFromString(completed.stdout)
    if response.errors:
        raise LinterError(linter, "; ".join(response.errors))
    return response.lint


def lint_spec(
    contents: SpecContents,
    linter: str,
    executable: str,
    rule_ids: Sequence[str] = (),
    keep_directory: bool = False,
) -> Any:
    """Write the spec to a temporary directory, lint it and return the Lint message.

    With ``keep_directory`` the directory is left in place and logged.
    """
    root = Path(tempfile.mkdtemp(prefix="registry-lint-"))
    try:
        write_spec(root, contents)
        lint = run_linter(linter, executable, str(root), rule_ids)
    finally:
        if keep_directory:
            logger.info("%s temp dir: %s", contents.name, root)
        else:
            shutil.rmtree(root, ignore_errors=True)
    lint.name = contents.name
    return lint
