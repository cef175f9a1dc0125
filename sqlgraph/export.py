"""Graphviz DOT export of a whole graph."""

from __future__ import annotations

import json
import logging
import os
from typing import TYPE_CHECKING, List, Union

from .codec import decode_tags, decode_text
from .errors import IoError

if TYPE_CHECKING:
    from .graph import Graph

LOG = logging.getLogger(__name__)


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _xlabel(blob: str) -> str:
    tags = decode_tags(blob)
    if not tags:
        return ""
    return json.dumps(tags, ensure_ascii=False, sort_keys=True)


def _attributes(label: str, tags: str) -> str:
    return f'[label="{_escape(decode_text(label))}", xlabel="{_escape(_xlabel(tags))}"]'


def to_dot(graph: "Graph") -> str:
    """Render every vertex and edge of ``graph`` as a DOT digraph."""
    lines: List[str] = ["digraph {", "\tforcelabels=true;"]
    nodes = graph._sql("SELECT id, label, tags FROM nodes ORDER BY id")
    for node_id, label, tags in nodes:
        lines.append(f"\t{node_id} {_attributes(label, tags)};")
    edges = graph._sql("SELECT source, target, label, tags FROM edges ORDER BY id")
    for source, target, label, tags in edges:
        lines.append(f"\t{source} -> {target} {_attributes(label, tags)};")
    lines.append("}")
    return "\n".join(lines) + "\n"


def write_graphviz(graph: "Graph", path: Union[str, "os.PathLike[str]"]) -> None:
    """Write :func:`to_dot` output to ``path``.

    Raises:
        IoError: If ``path`` cannot be written
    """
    target = os.fspath(path)
    text = to_dot(graph)
    try:
        with open(target, "w", encoding="utf-8", errors="surrogateescape") as handle:
            handle.write(text)
    except OSError as err:
        raise IoError(f"Failed to write graphviz output ({err.strerror})", target) from err
    LOG.debug("wrote graphviz output to %s", target)


__all__ = ["to_dot", "write_graphviz"]
