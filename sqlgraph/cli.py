"""Command front end: a dotted method-call language over graph sessions.

Statements end with ``;`` and chain calls, variables and literals with ``.``::

    graph('demo.db', 'true').as('g');
    g.add_vertex().label('root');
    g.v().with_label('root').out().target();
"""

from __future__ import annotations

import argparse
import enum
import json
import logging
import re
import sys
from typing import Any, Callable, Dict, List, Optional, Sequence, TextIO, Tuple

from . import __version__
from .errors import CommandError, GraphError
from .graph import Graph
from .query import Edges, Vertices
from .result import Result

LOG = logging.getLogger(__name__)

_PUNCTUATION = ".(),;"
_QUOTES = "'\""
_INTEGER_REGEX = re.compile(r"-?[0-9]+")
_RULE = "~" * 64


class ValueKind(enum.Enum):
    """Every kind of value a statement can produce."""

    TEXT = "text"
    INTEGER = "integer"
    RESULT = "result"
    VERTICES = "vertices"
    EDGES = "edges"
    GRAPH = "graph"


def kind_of(value: Any) -> ValueKind:
    if isinstance(value, bool):
        raise CommandError("booleans are not command values")
    if isinstance(value, str):
        return ValueKind.TEXT
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, Result):
        return ValueKind.RESULT
    if isinstance(value, Vertices):
        return ValueKind.VERTICES
    if isinstance(value, Edges):
        return ValueKind.EDGES
    if isinstance(value, Graph):
        return ValueKind.GRAPH
    raise CommandError(f"unsupported value of type {type(value).__name__}")


def lex(text: str) -> List[str]:
    """Split ``text`` into words, quoted literals and punctuation.

    Literals keep their surrounding quotes; inside them a backslash takes the
    next character literally. ``//`` starts a comment running to end of line.

    Raises:
        CommandError: If a literal is not terminated
    """
    tokens: List[str] = []
    current: List[str] = []

    def flush() -> None:
        if current:
            tokens.append("".join(current))
            current.clear()

    pos = 0
    while pos < len(text):
        char = text[pos]
        if char in _QUOTES:
            flush()
            literal = [char]
            pos += 1
            while pos < len(text) and text[pos] != char:
                if text[pos] == "\\":
                    pos += 1
                    if pos >= len(text):
                        break
                literal.append(text[pos])
                pos += 1
            if pos >= len(text):
                raise CommandError(f"Unterminated literal starting with {char}")
            literal.append(char)
            tokens.append("".join(literal))
        elif text.startswith("//", pos):
            flush()
            end = text.find("\n", pos)
            pos = len(text) if end < 0 else end
            continue
        elif char.isspace():
            flush()
        elif char in _PUNCTUATION:
            flush()
            tokens.append(char)
        else:
            current.append(char)
        pos += 1
    flush()
    return tokens


def _expect_receiver(name: str, receiver: Any, *kinds: ValueKind) -> Any:
    if not kinds:
        if receiver is not None:
            raise CommandError(f"'{name}' does not take a receiver")
        return None
    if receiver is None:
        raise CommandError(f"'{name}' requires a receiver")
    kind = kind_of(receiver)
    if kind not in kinds:
        expected = " or ".join(k.value for k in kinds)
        raise CommandError(f"'{name}' expects a {expected} receiver, got {kind.value}")
    return receiver


def _expect_args(
    name: str, args: Sequence[Any], *kinds: Tuple[ValueKind, ...], required: Optional[int] = None
) -> List[Any]:
    needed = len(kinds) if required is None else required
    if not needed <= len(args) <= len(kinds):
        if needed == len(kinds):
            raise CommandError(f"'{name}' takes {needed} argument(s), got {len(args)}")
        raise CommandError(f"'{name}' takes {needed} to {len(kinds)} argument(s), got {len(args)}")
    for idx, (value, allowed) in enumerate(zip(args, kinds)):
        kind = kind_of(value)
        if kind not in allowed:
            expected = " or ".join(k.value for k in allowed)
            raise CommandError(f"argument {idx + 1} of '{name}' must be {expected}, got {kind.value}")
    return list(args)


def _as_int(name: str, value: Any) -> int:
    if isinstance(value, int):
        return value
    if _INTEGER_REGEX.fullmatch(value.strip()):
        return int(value)
    raise CommandError(f"'{name}' expects an integer, got '{value}'")


def _as_flag(value: str) -> bool:
    return value.strip().lower() == "true"


_TEXT = (ValueKind.TEXT,)
_NUMBER = (ValueKind.INTEGER, ValueKind.TEXT)
_SETS = (ValueKind.VERTICES, ValueKind.EDGES)

Operation = Callable[["Interpreter", Any, List[Any]], Any]


def _op_graph(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    _expect_receiver("graph", receiver)
    _expect_args("graph", args, _TEXT, _TEXT, _TEXT, required=0)
    if not args:
        graph = Graph(":memory:", erase=False, persistent=False)
    else:
        erase = _as_flag(args[1]) if len(args) > 1 else False
        persistent = _as_flag(args[2]) if len(args) > 2 else True
        graph = Graph(args[0], erase=erase, persistent=persistent)
    interp.graphs.append(graph)
    return graph


def _op_filepath(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    graph = _expect_receiver("filepath", receiver, ValueKind.GRAPH)
    _expect_args("filepath", args)
    return graph.path


def _op_quit(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    _expect_receiver("q", receiver)
    _expect_args("q", args)
    interp.running = False
    return None


def _op_vertices(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    graph = _expect_receiver("v", receiver, ValueKind.GRAPH)
    _expect_args("v", args, _TEXT, required=0)
    return graph.v(*args)


def _op_edges(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    graph = _expect_receiver("e", receiver, ValueKind.GRAPH)
    _expect_args("e", args, _TEXT, required=0)
    return graph.e(*args)


def _op_graphviz(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    graph = _expect_receiver("graphviz", receiver, ValueKind.GRAPH)
    (path,) = _expect_args("graphviz", args, _TEXT)
    graph.graphviz(path)
    return None


def _op_commit(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    graph = _expect_receiver("commit", receiver, ValueKind.GRAPH)
    _expect_args("commit", args)
    graph.commit()
    return None


def _op_rollback(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    graph = _expect_receiver("rollback", receiver, ValueKind.GRAPH)
    _expect_args("rollback", args)
    graph.rollback()
    return None


def _op_add_vertex(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    graph = _expect_receiver("add_vertex", receiver, ValueKind.GRAPH)
    _expect_args("add_vertex", args, _NUMBER, required=0)
    if args:
        return graph.add_vertex(_as_int("add_vertex", args[0]))
    return graph.add_vertex()


def _op_add_edge(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    target = _expect_receiver("add_edge", receiver, ValueKind.GRAPH, ValueKind.VERTICES)
    if isinstance(target, Vertices):
        (other,) = _expect_args("add_edge", args, (ValueKind.VERTICES,))
        return target.add_edge(other)
    _expect_args("add_edge", args, _NUMBER, _NUMBER, _NUMBER, required=2)
    ids = [_as_int("add_edge", value) for value in args]
    return target.add_edge(*ids)


def _op_as(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    if receiver is None:
        raise CommandError("'as' requires a receiver")
    (name,) = _expect_args("as", args, _TEXT)
    if not name or name in OPERATIONS or name[0] in _QUOTES or _INTEGER_REGEX.fullmatch(name):
        raise CommandError(f"'{name}' cannot be used as a variable name")
    interp.variables[name] = receiver
    return None


def _op_where(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    entities = _expect_receiver("where", receiver, *_SETS)
    (predicate,) = _expect_args("where", args, _TEXT)
    return entities.where(predicate)


def _op_limit(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    entities = _expect_receiver("limit", receiver, *_SETS)
    (count,) = _expect_args("limit", args, _NUMBER)
    return entities.limit(_as_int("limit", count))


def _op_with_label(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    entities = _expect_receiver("with_label", receiver, *_SETS)
    (label,) = _expect_args("with_label", args, _TEXT)
    return entities.with_label(label)


def _op_with_tag(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    entities = _expect_receiver("with_tag", receiver, *_SETS)
    key, value = _expect_args("with_tag", args, _TEXT, _TEXT)
    return entities.with_tag(key, value)


def _op_with_id(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    entities = _expect_receiver("with_id", receiver, *_SETS)
    (entity_id,) = _expect_args("with_id", args, _NUMBER)
    return entities.with_id(_as_int("with_id", entity_id))


def _op_with_source(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    edges = _expect_receiver("with_source", receiver, ValueKind.EDGES)
    (vertices,) = _expect_args("with_source", args, (ValueKind.VERTICES,))
    return edges.with_source(vertices)


def _op_with_target(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    edges = _expect_receiver("with_target", receiver, ValueKind.EDGES)
    (vertices,) = _expect_args("with_target", args, (ValueKind.VERTICES,))
    return edges.with_target(vertices)


def _set_operation(name: str) -> Operation:
    def run(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
        entities = _expect_receiver(name, receiver, *_SETS)
        (other,) = _expect_args(name, args, (kind_of(entities),))
        return getattr(entities, name)(other)

    return run


def _op_label(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    entities = _expect_receiver("label", receiver, *_SETS)
    _expect_args("label", args, _TEXT, required=0)
    return entities.label(*args)


def _op_tag(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    entities = _expect_receiver("tag", receiver, *_SETS)
    _expect_args("tag", args, _TEXT, _TEXT, required=1)
    return entities.tag(*args)


def _op_keys(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    entities = _expect_receiver("keys", receiver, *_SETS)
    _expect_args("keys", args)
    return Result(["key"], [[key] for key in entities.keys()])


def _op_id(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    entities = _expect_receiver("id", receiver, *_SETS)
    _expect_args("id", args)
    return Result(["id"], [[str(entity_id)] for entity_id in entities.id()])


def _op_erase(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    entities = _expect_receiver("erase", receiver, *_SETS)
    _expect_args("erase", args)
    entities.erase()
    return None


def _op_in(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    vertices = _expect_receiver("in", receiver, ValueKind.VERTICES)
    _expect_args("in", args)
    return vertices.in_()


def _op_out(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    vertices = _expect_receiver("out", receiver, ValueKind.VERTICES)
    _expect_args("out", args)
    return vertices.out()


def _op_source(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    edges = _expect_receiver("source", receiver, ValueKind.EDGES)
    _expect_args("source", args)
    return edges.source()


def _op_target(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
    edges = _expect_receiver("target", receiver, ValueKind.EDGES)
    _expect_args("target", args)
    return edges.target()


def _degree_filter(name: str) -> Operation:
    def run(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
        vertices = _expect_receiver(name, receiver, ValueKind.VERTICES)
        _expect_args(name, args, _NUMBER, _TEXT, required=1)
        return getattr(vertices, name)(_as_int(name, args[0]), *args[1:])

    return run


def _degree_count(name: str) -> Operation:
    def run(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
        vertices = _expect_receiver(name, receiver, ValueKind.VERTICES)
        _expect_args(name, args, _TEXT, required=0)
        return getattr(vertices, name)(*args)

    return run


def _reachability(name: str) -> Operation:
    def run(interp: "Interpreter", receiver: Any, args: List[Any]) -> Any:
        vertices = _expect_receiver(name, receiver, ValueKind.VERTICES)
        _expect_args(name, args, _TEXT, _TEXT, required=0)
        return getattr(vertices, name)(*args)

    return run


OPERATIONS: Dict[str, Operation] = {
    "graph": _op_graph,
    "filepath": _op_filepath,
    "q": _op_quit,
    "v": _op_vertices,
    "e": _op_edges,
    "graphviz": _op_graphviz,
    "commit": _op_commit,
    "rollback": _op_rollback,
    "add_vertex": _op_add_vertex,
    "add_edge": _op_add_edge,
    "as": _op_as,
    "where": _op_where,
    "limit": _op_limit,
    "with_label": _op_with_label,
    "with_tag": _op_with_tag,
    "with_id": _op_with_id,
    "with_source": _op_with_source,
    "with_target": _op_with_target,
    "join": _set_operation("join"),
    "intersection": _set_operation("intersection"),
    "complement": _set_operation("complement"),
    "excluding": _set_operation("excluding"),
    "label": _op_label,
    "tag": _op_tag,
    "keys": _op_keys,
    "id": _op_id,
    "erase": _op_erase,
    "in": _op_in,
    "out": _op_out,
    "source": _op_source,
    "target": _op_target,
    "with_in_degree": _degree_filter("with_in_degree"),
    "with_out_degree": _degree_filter("with_out_degree"),
    "in_degree": _degree_count("in_degree"),
    "out_degree": _degree_count("out_degree"),
    "traverse": _reachability("traverse"),
    "r_traverse": _reachability("r_traverse"),
}


def _tag_lines(blob: str) -> List[str]:
    return [f"|- '{key}': {value}" for key, value in sorted(json.loads(blob).items())]


def format_value(value: Any) -> str:
    """Render a statement value the way the command line prints it."""
    kind = kind_of(value)
    if kind is ValueKind.TEXT:
        return f'"{value}"\n'
    if kind is ValueKind.INTEGER:
        return f"{value}\n"
    if kind is ValueKind.RESULT:
        return str(value)
    if kind is ValueKind.GRAPH:
        return f"+ Graph object at '{value.path}' w/ {value.sql_call_counter} SQL calls\n"
    lines: List[str] = []
    if kind is ValueKind.VERTICES:
        for entity_id, label, tags in value.select("label, tags"):
            lines.append(f"+ {entity_id} '{label}'")
            lines.extend(_tag_lines(tags))
    else:
        for entity_id, source, target, label, tags in value.select("source, target, label, tags"):
            lines.append(f"+ {entity_id}: {source} -> {target} '{label}'")
            lines.extend(_tag_lines(tags))
    return "".join(line + "\n" for line in lines)


class Interpreter:
    """Evaluates statements against a table of named variables."""

    def __init__(self, out: Optional[TextIO] = None) -> None:
        self.out = out if out is not None else sys.stdout
        self.variables: Dict[str, Any] = {}
        self.graphs: List[Graph] = []
        self.running = True

    def close(self) -> None:
        """Close every graph opened by ``graph(...)`` statements."""
        while self.graphs:
            self.graphs.pop().close()

    def __enter__(self) -> "Interpreter":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def execute(self, text: str) -> List[Any]:
        """Run every statement in ``text``, printing each non-empty value."""
        return self.run_tokens(lex(text))

    def run_tokens(self, tokens: Sequence[str]) -> List[Any]:
        values: List[Any] = []
        pos = 0
        while pos < len(tokens) and self.running:
            value, pos = self._chain(tokens, pos)
            if pos >= len(tokens) or tokens[pos] != ";":
                found = tokens[pos] if pos < len(tokens) else "end of input"
                raise CommandError(f"expected ';' but found '{found}'")
            pos += 1
            if value is not None:
                self.out.write(format_value(value) + "\n")
                values.append(value)
        return values

    def call(self, name: str, receiver: Any, args: List[Any]) -> Any:
        operation = OPERATIONS.get(name)
        if operation is None:
            raise CommandError(f"Invalid method '{name}'")
        LOG.debug("call %s with %d argument(s)", name, len(args))
        return operation(self, receiver, args)

    def _chain(self, tokens: Sequence[str], pos: int) -> Tuple[Any, int]:
        value: Any = None
        chained = False
        while True:
            if pos >= len(tokens):
                raise CommandError("unexpected end of input")
            token = tokens[pos]
            if token in _PUNCTUATION:
                raise CommandError(f"unexpected '{token}'")
            if pos + 1 < len(tokens) and tokens[pos + 1] == "(":
                args, pos = self._arguments(tokens, pos + 2)
                value = self.call(token, value, args)
            elif chained:
                raise CommandError(f"expected a method call after '.', found '{token}'")
            elif token[0] in _QUOTES:
                value = token[1:-1]
                pos += 1
            elif _INTEGER_REGEX.fullmatch(token):
                value = int(token)
                pos += 1
            elif token in self.variables:
                value = self.variables[token]
                pos += 1
            else:
                raise CommandError(f"Symbol '{token}' could not be resolved")
            if pos < len(tokens) and tokens[pos] == ".":
                pos += 1
                chained = True
                continue
            return value, pos

    def _arguments(self, tokens: Sequence[str], pos: int) -> Tuple[List[Any], int]:
        args: List[Any] = []
        if pos < len(tokens) and tokens[pos] == ")":
            return args, pos + 1
        while True:
            value, pos = self._chain(tokens, pos)
            if value is None:
                raise CommandError("argument expression produced no value")
            args.append(value)
            if pos >= len(tokens):
                raise CommandError("unterminated argument list")
            if tokens[pos] == ",":
                pos += 1
                continue
            if tokens[pos] == ")":
                return args, pos + 1
            raise CommandError(f"expected ',' or ')' but found '{tokens[pos]}'")

    def dump_variables(self, stream: TextIO) -> None:
        stream.write("All variables:\n")
        for name in sorted(self.variables):
            stream.write(f"Variable `{name}`:\n")
            try:
                stream.write(format_value(self.variables[name]) + "\n")
            except GraphError as err:
                stream.write(f"<unavailable: {err}>\n\n")


def _repl(interp: Interpreter, stdin: TextIO) -> None:
    interactive = stdin.isatty()
    line_no = 1
    pending: List[str] = []
    while interp.running:
        if interactive:
            interp.out.write(f"{line_no}> ")
            interp.out.flush()
        line = stdin.readline()
        if not line:
            break
        line_no += 1
        pending.extend(lex(line))
        if pending and pending[-1] == ";":
            tokens, pending = pending, []
            interp.run_tokens(tokens)
    if pending:
        interp.run_tokens(pending)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sqlgraph", description="Query a property graph stored in SQLite.")
    parser.add_argument("--input", metavar="PATH", help="Execute statements from a script instead of stdin")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    interp = Interpreter()
    try:
        if args.input:
            try:
                with open(args.input, "r", encoding="utf-8") as handle:
                    script = handle.read()
            except OSError as err:
                raise CommandError(f"cannot read script '{args.input}': {err.strerror}") from err
            interp.execute(script)
        else:
            _repl(interp, sys.stdin)
    except (GraphError, ValueError, TypeError) as err:
        sys.stderr.write(f"{_RULE}\nError: {err}\n")
        interp.dump_variables(sys.stderr)
        interp.close()
        return 2
    interp.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
