"""Derived metadata computed from spec contents."""

from apg.compute.complexity import compute_complexity
from apg.compute.lint import lint_relation, lint_spec, linter_executable
from apg.compute.lintstats import (
    add_complexity,
    compute_lint_stats,
    lintstats_relation,
    merge_lint_stats,
)
from apg.compute.messages import artifact_mime_type, to_json
from apg.compute.vocabulary import compute_vocabulary

__all__ = [
    "add_complexity",
    "artifact_mime_type",
    "compute_complexity",
    "compute_lint_stats",
    "compute_vocabulary",
    "lint_relation",
    "lint_spec",
    "linter_executable",
    "lintstats_relation",
    "merge_lint_stats",
    "to_json",
]
