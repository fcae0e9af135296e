"""Command implementations, independent of the CLI layer."""

from apg.commands.common import DEFAULT_JOBS, BulkOptions, CommandEnv, run_bulk

__all__ = ["DEFAULT_JOBS", "BulkOptions", "CommandEnv", "run_bulk"]
