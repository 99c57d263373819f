"""Convert YAML documents into labeled directed graphs.

Every node of the parsed document becomes a graph node:
- mappings become ``Map(n)`` with one key node per entry
- sequences become ``Sequence(n)`` with one ``[i]`` index node per element
- scalars become leaves (strings are shown with their quotes)
- locally tagged values (``!Point {...}``) become ``Tagged(!Point)``

Edges carry the relationship kind (contains, key, value or index). The graph
can be emitted as a Graphviz DOT description; edge kinds are left out of the
DOT text unless asked for.
"""
from __future__ import annotations

import argparse
import collections.abc
import math
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

import yaml

NodeId = int

CONTAINS = "contains"
KEY = "key"
VALUE = "value"
INDEX = "index"
EDGE_LABELS = (CONTAINS, KEY, VALUE, INDEX)


class DocumentError(RuntimeError):
    """A YAML file could not be read or parsed; the cause is chained."""


class ConversionError(ValueError):
    """A mapping key cannot be used as a node label."""

    def __init__(self, key: Any):
        self.key = key.value if isinstance(key, ComplexKey) else key
        super().__init__(f"Failed to convert key to string: {self.key!r}")


@dataclass
class Tagged:
    tag: str
    value: Any


class ComplexKey:
    """A mapping key PyYAML cannot hash, e.g. a sequence used as a key."""

    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value

    def __repr__(self) -> str:
        return f"ComplexKey({self.value!r})"


@dataclass(frozen=True)
class Edge:
    source: NodeId
    target: NodeId
    label: str


@dataclass
class Graph:
    """Directed multigraph whose nodes are identified by creation index."""

    labels: List[str] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)

    def add_node(self, label: str) -> NodeId:
        self.labels.append(label)
        return len(self.labels) - 1

    def add_edge(self, source: NodeId, target: NodeId, label: str) -> Edge:
        edge = Edge(source, target, label)
        self.edges.append(edge)
        return edge

    @property
    def node_count(self) -> int:
        return len(self.labels)

    @property
    def edge_count(self) -> int:
        return len(self.edges)


def _number_label(number) -> str:
    if isinstance(number, float):
        if math.isnan(number):
            return ".nan"
        if math.isinf(number):
            return ".inf" if number > 0 else "-.inf"
    return str(number)


def _add_linked(graph: Graph, label: str, parent: Optional[NodeId], kind: str) -> NodeId:
    node = graph.add_node(label)
    if parent is not None:
        graph.add_edge(parent, node, kind)
    return node


def add_value(graph: Graph, value: Any, parent: Optional[NodeId] = None) -> NodeId:
    """Add ``value`` and everything below it to ``graph``.

    The node for ``value`` is created and linked to ``parent`` before any of
    its children. Containers are linked with a "contains" edge and scalars
    with a "value" edge. Mapping entries and sequence elements hang off an
    intermediate key node ("key" edge) or index node ("index" edge).

    Returns the id of the node created for ``value``. Raises ConversionError
    for a mapping key that is not a string.
    """
    if isinstance(value, dict):
        node = _add_linked(graph, f"Map({len(value)})", parent, CONTAINS)
        for key, item in value.items():
            if not isinstance(key, str):
                raise ConversionError(key)
            key_node = graph.add_node(key)
            graph.add_edge(node, key_node, KEY)
            add_value(graph, item, key_node)
        return node
    if isinstance(value, (list, tuple)):
        node = _add_linked(graph, f"Sequence({len(value)})", parent, CONTAINS)
        for i, item in enumerate(value):
            index_node = graph.add_node(f"[{i}]")
            graph.add_edge(node, index_node, INDEX)
            add_value(graph, item, index_node)
        return node
    if isinstance(value, Tagged):
        node = _add_linked(graph, f"Tagged({value.tag})", parent, CONTAINS)
        add_value(graph, value.value, node)
        return node
    if isinstance(value, str):
        return _add_linked(graph, f'"{value}"', parent, VALUE)
    # bool is an int subclass
    if isinstance(value, bool):
        return _add_linked(graph, "true" if value else "false", parent, VALUE)
    if isinstance(value, (int, float)):
        return _add_linked(graph, _number_label(value), parent, VALUE)
    if value is None:
        return _add_linked(graph, "null", parent, VALUE)
    raise TypeError(f"cannot convert {type(value).__name__} to a graph node")


def yaml_to_graph(value: Any) -> Graph:
    """Build a fresh graph for a parsed YAML value."""
    graph = Graph()
    add_value(graph, value)
    return graph


def _quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def to_dot(graph: Graph, edge_labels: bool = False) -> str:
    """Create a DOT representation of the graph.

    Edge kinds are only written when ``edge_labels`` is true.
    """
    lines = ["digraph G {"]
    for node, label in enumerate(graph.labels):
        lines.append(f"    n{node} [label={_quote(label)}];")
    for edge in graph.edges:
        if edge_labels:
            lines.append(f"    n{edge.source} -> n{edge.target} [label={_quote(edge.label)}];")
        else:
            lines.append(f"    n{edge.source} -> n{edge.target};")
    lines.append("}")
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# loading


class DocumentLoader(yaml.SafeLoader):
    """SafeLoader that keeps custom tags and resolves scalars as YAML 1.2 does.

    ``!Name value`` loads as ``Tagged("!Name", value)``, timestamps and
    binary data stay strings, duplicate keys are rejected, and unhashable
    mapping keys are wrapped in ComplexKey instead of aborting the load.
    """

    def construct_document_mapping(self, node):
        data = {}
        yield data
        if not isinstance(node, yaml.MappingNode):
            raise yaml.constructor.ConstructorError(
                None, None, f"expected a mapping node, but found {node.id}", node.start_mark
            )
        own_count = sum(1 for key_node, _ in node.value if key_node.tag != _MERGE_TAG)
        self.flatten_mapping(node)
        # merged entries come first and may be overridden by the mapping's own keys
        merged_count = len(node.value) - own_count
        own_keys = set()
        for i, (key_node, value_node) in enumerate(node.value):
            key = self.construct_object(key_node, deep=True)
            if not isinstance(key, collections.abc.Hashable):
                key = ComplexKey(key)
            if i >= merged_count:
                if key in own_keys:
                    raise yaml.constructor.ConstructorError(
                        "while constructing a mapping", node.start_mark,
                        f"found duplicate key {key!r}", key_node.start_mark,
                    )
                own_keys.add(key)
            data[key] = self.construct_object(value_node, deep=True)

    def construct_core_int(self, node):
        value = self.construct_scalar(node)
        try:
            if value[:2] == "0o":
                return int(value[2:], 8)
            if value[:2] == "0x":
                return int(value[2:], 16)
            return int(value)
        except ValueError as e:
            raise yaml.constructor.ConstructorError(
                None, None, f"invalid integer {value!r}", node.start_mark
            ) from e


def construct_tagged(loader: DocumentLoader, tag_suffix: str, node) -> Tagged:
    """Load the value under a custom tag as if it were untagged."""
    if isinstance(node, yaml.ScalarNode):
        tag = loader.resolve(yaml.ScalarNode, node.value, (node.style is None, False))
        inner = yaml.ScalarNode(tag, node.value, node.start_mark, node.end_mark, style=node.style)
    elif isinstance(node, yaml.SequenceNode):
        inner = yaml.SequenceNode(
            "tag:yaml.org,2002:seq", node.value, node.start_mark, node.end_mark,
            flow_style=node.flow_style,
        )
    else:
        inner = yaml.MappingNode(
            "tag:yaml.org,2002:map", node.value, node.start_mark, node.end_mark,
            flow_style=node.flow_style,
        )
    return Tagged(node.tag, loader.construct_object(inner, deep=True))


_MERGE_TAG = "tag:yaml.org,2002:merge"
_BOOL_TAG = "tag:yaml.org,2002:bool"
_INT_TAG = "tag:yaml.org,2002:int"
_FLOAT_TAG = "tag:yaml.org,2002:float"
_VALUE_TAG = "tag:yaml.org,2002:value"

# Plain scalars resolve with the YAML 1.2 core schema: yes/no/on/off, 12:30,
# 017 style octals and a bare "=" are not the YAML 1.1 types PyYAML assumes.
DocumentLoader.yaml_implicit_resolvers = {
    first: [
        (tag, regexp) for tag, regexp in resolvers
        if tag not in (_BOOL_TAG, _INT_TAG, _FLOAT_TAG, _VALUE_TAG)
    ]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
DocumentLoader.add_implicit_resolver(
    _BOOL_TAG, re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"), list("tTfF")
)
DocumentLoader.add_implicit_resolver(
    _INT_TAG, re.compile(r"^(?:[-+]?[0-9]+|0o[0-7]+|0x[0-9a-fA-F]+)$"), list("-+0123456789")
)
DocumentLoader.add_implicit_resolver(
    _FLOAT_TAG,
    re.compile(r"""^(?:[-+]?(?:\.[0-9]+|[0-9]+(?:\.[0-9]*)?)(?:[eE][-+]?[0-9]+)?
                |[-+]?\.(?:inf|Inf|INF)
                |\.(?:nan|NaN|NAN))$""", re.X),
    list("-+0123456789."),
)
DocumentLoader.add_constructor("tag:yaml.org,2002:map", DocumentLoader.construct_document_mapping)
DocumentLoader.add_constructor("tag:yaml.org,2002:set", DocumentLoader.construct_document_mapping)
DocumentLoader.add_constructor(_INT_TAG, DocumentLoader.construct_core_int)
# a "<<" that is not a mapping key is just text
DocumentLoader.add_constructor(_MERGE_TAG, yaml.SafeLoader.construct_yaml_str)
DocumentLoader.add_constructor("tag:yaml.org,2002:timestamp", yaml.SafeLoader.construct_yaml_str)
DocumentLoader.add_constructor("tag:yaml.org,2002:binary", yaml.SafeLoader.construct_yaml_str)
# any tag without a constructor of its own, local (!Point) or global
DocumentLoader.add_multi_constructor(None, construct_tagged)


def parse_yaml(text: str) -> Any:
    """Parse YAML text; an empty document gives None."""
    return yaml.load(text, Loader=DocumentLoader)


def load_yaml(path: Path) -> Any:
    """Read and parse a YAML file, raising DocumentError on failure."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentError("Failed to read YAML file") from e
    try:
        return parse_yaml(text)
    except yaml.YAMLError as e:
        raise DocumentError("Failed to parse YAML content") from e


def dot_from_yaml(yaml_path: Path, edge_labels: bool = False) -> str:
    """Load a YAML file and return its graph as DOT text."""
    return to_dot(yaml_to_graph(load_yaml(yaml_path)), edge_labels=edge_labels)


def write_dot_from_yaml(yaml_path: Path, dot_path: Path, edge_labels: bool = False) -> None:
    """Read YAML file and write a DOT file."""
    dot = dot_from_yaml(yaml_path, edge_labels=edge_labels)
    Path(dot_path).write_text(dot)


class UsageParser(argparse.ArgumentParser):
    """ArgumentParser whose usage errors exit with status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def main(argv: Optional[List[str]] = None) -> None:
    parser = UsageParser(description="Convert a YAML document to a DOT graph")
    parser.add_argument("yaml_file", type=Path)
    parser.add_argument(
        "-o", "--output", type=Path, metavar="DOT_FILE",
        help="write the graph to DOT_FILE instead of stdout",
    )
    parser.add_argument(
        "--edge-labels", action="store_true",
        help="label edges with contains/key/value/index",
    )
    args = parser.parse_args(argv)

    try:
        dot = dot_from_yaml(args.yaml_file, edge_labels=args.edge_labels)
    except DocumentError as e:
        sys.exit(f"error: {e}: {e.__cause__}")
    except ConversionError as e:
        sys.exit(f"error: {e}")

    if args.output:
        try:
            args.output.write_text(dot)
        except OSError as e:
            sys.exit(f"error: Failed to write DOT file: {e}")
    else:
        sys.stdout.write(dot)


if __name__ == "__main__":
    main()
