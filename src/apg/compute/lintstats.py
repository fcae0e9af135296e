"""Problem counts summarizing lint results."""

from __future__ import annotations

from typing import Any

from apg.compute.messages import LintProblemCount, LintStats

__all__ = [
    "add_complexity",
    "compute_lint_stats",
    "lintstats_relation",
    "merge_lint_stats",
]


def lintstats_relation(linter: str) -> str:
    return f"lintstats-{linter}"


def compute_lint_stats(lint: Any) -> Any:
    """Count the problems in a Lint message by rule, most frequent first.

    Rules with equal counts keep the order in which they were first seen.
    """
    counts: dict[str, Any] = {}
    for file in lint.files:
        for problem in file.problems:
            count = counts.get(problem.rule_id)
            if count is None:
                count = LintProblemCount(
                    rule_id=problem.rule_id, rule_doc_uri=problem.rule_doc_uri
                )
                counts[problem.rule_id] = count
            count.count += 1
    stats = LintStats()
    stats.problem_counts.extend(sorted(counts.values(), key=lambda c: -c.count))
    return stats


def add_complexity(stats: Any, complexity: Any) -> Any:
    """Fill operation and schema counts from a Complexity message."""
    stats.operation_count = (
        complexity.get_count
        + complexity.post_count
        + complexity.put_count
        + complexity.delete_count
    )
    stats.schema_count = complexity.schema_count
    return stats


def merge_lint_stats(total: Any, stats: Any) -> Any:
    """Add ``stats`` into ``total``.

    Problem counts are appended, not combined by rule.
    """
    total.operation_count += stats.operation_count
    total.schema_count += stats.schema_count
    total.problem_counts.extend(stats.problem_counts)
    return total
