"""``get``: print the resources a pattern matches."""

from __future__ import annotations

from typing import Any

from apg.commands.common import CommandEnv
from apg.names import parse_resource
from apg.visitor import visit

__all__ = ["OUTPUT_FORMATS", "get", "render"]

OUTPUT_FORMATS = ("names", "json")


def render(resource: Any, output: str) -> str:
    """Render one visited resource.

    Projects have no message and render as their name.
    """
    if output == "json" and hasattr(type(resource), "to_json"):
        return type(resource).to_json(resource)
    return getattr(resource, "name", str(resource))


def get(
    env: CommandEnv, pattern: str, filter: str = "", output: str = "names"
) -> int:
    ref = parse_resource(pattern)

    def show(resource: Any) -> None:
        env.echo(render(resource, output))

    return visit(env.client, ref, show, filter=filter)
