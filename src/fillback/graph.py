"""
Module dependency graph: construction from an AnalysisContext, statistics,
and Mermaid rendering. NetworkX backs the structural metrics.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum

import networkx as nx

from .models import AnalysisContext

log = logging.getLogger(__name__)

_MOST_CONNECTED_TOP_N = 5
_COMPACT_EDGE_LIMIT = 50

_JS_EXTENSIONS = (".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".mts", ".cts")
_LOCAL_ROOTS = {"crate", "self", "super"}
_MERMAID_RESERVED = {"end", "graph", "subgraph", "flowchart", "style", "class", "click"}


class NodeKind(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


@dataclass(frozen=True)
class GraphNode:
    id: str
    kind: NodeKind
    path: str | None = None         # source file for internal modules
    symbol_count: int = 0
    public_symbol_count: int = 0

    @property
    def is_external(self) -> bool:
        return self.kind is NodeKind.EXTERNAL


def _components(raw_path: str) -> tuple[list[str], bool]:
    """Split an import path into components; also report whether it is local-rooted."""
    path = raw_path.strip()
    for ext in _JS_EXTENSIONS:
        if path.endswith(ext):
            path = path[: -len(ext)]
            break
    parts = [p for p in re.split(r"::|[./\\]", path) if p]
    is_local = path.startswith(".") or "::" in path
    while parts and parts[0] in _LOCAL_ROOTS:
        parts.pop(0)
        is_local = True
    return parts, is_local


def resolve_import_target(raw_path: str, internal_names: set[str]) -> str | None:
    """
    Return the internal module an import refers to, or None if it is external.

    "crate::config::Config" → "config"      (local root, first component)
    "./utils/helper.js"     → "helper" or "utils"
    "os.path"               → "path" only if a module named "path" was analyzed
    """
    parts, is_local = _components(raw_path)
    if not parts:
        return None
    if parts[-1] in internal_names:
        return parts[-1]
    if is_local and parts[0] in internal_names:
        return parts[0]
    return None


def is_local_root(raw_path: str) -> bool:
    """True for imports naming only a local root ("crate", "super", "self", "./")."""
    parts, is_local = _components(raw_path)
    return is_local and not parts


@dataclass
class DependencyGraph:
    nodes: dict[str, GraphNode] = field(default_factory=dict)     # id → node, insertion-ordered
    edges: list[tuple[str, str]] = field(default_factory=list)    # (from_id, to_id), one per import

    @classmethod
    def from_analysis(cls, context: AnalysisContext) -> "DependencyGraph":
        """Build the graph fresh from an analysis context."""
        graph = cls()

        for module in context.modules:
            if module.module_name in graph.nodes:
                continue
            graph.nodes[module.module_name] = GraphNode(
                id=module.module_name,
                kind=NodeKind.INTERNAL,
                path=module.file_path,
                symbol_count=len(module.symbols),
                public_symbol_count=len(module.public_symbols),
            )
        internal_names = set(graph.nodes)

        for module in context.modules:
            for imp in module.imports:
                target = resolve_import_target(imp.raw_path, internal_names)
                if target is None and is_local_root(imp.raw_path):
                    # no module to point at; not a third-party dependency either
                    log.debug("Unresolved local import %r in %s", imp.raw_path, module.module_name)
                    continue
                if target is None:
                    target = imp.raw_path
                    if target not in graph.nodes:
                        graph.nodes[target] = GraphNode(id=target, kind=NodeKind.EXTERNAL)
                graph.edges.append((module.module_name, target))

        log.info(
            "Graph: %d internal, %d external, %d edges",
            len(graph.internal_modules()), len(graph.external_dependencies()), len(graph.edges),
        )
        return graph

    def internal_modules(self) -> list[GraphNode]:
        return [n for n in self.nodes.values() if not n.is_external]

    def external_dependencies(self) -> list[GraphNode]:
        return [n for n in self.nodes.values() if n.is_external]

    def to_networkx(self) -> nx.MultiDiGraph:
        """MultiDiGraph view; parallel edges preserve one-edge-per-import."""
        g: nx.MultiDiGraph = nx.MultiDiGraph()
        for node in self.nodes.values():
            g.add_node(node.id, kind=node.kind.value)
        g.add_edges_from(self.edges)
        return g

    # ── Mermaid ───────────────────────────────────────────────────────────────

    def _mermaid_ids(self) -> dict[str, str]:
        """Sanitized, collision-free Mermaid ids (internal modules claim names first)."""
        ids: dict[str, str] = {}
        used: set[str] = set()
        for node_id in self.nodes:
            base = _sanitize_id(node_id)
            candidate, n = base, 2
            while candidate in used:
                candidate = f"{base}_{n}"
                n += 1
            used.add(candidate)
            ids[node_id] = candidate
        return ids

    def _node_line(self, node: GraphNode, mermaid_id: str) -> str:
        label = _escape_label(node.id)
        if node.is_external:
            return f'{mermaid_id}[/"{label}"/]'
        return f'{mermaid_id}["{label}"]'

    def to_mermaid(self) -> str:
        """Fenced Mermaid flowchart: one line per node, one line per edge."""
        ids = self._mermaid_ids()
        lines = ["```mermaid", "flowchart TD"]
        for node in self.nodes.values():
            lines.append("    " + self._node_line(node, ids[node.id]))
        for src, dst in self.edges:
            lines.append(f"    {ids[src]} --> {ids[dst]}")
        lines.append("```")
        return "\n".join(lines) + "\n"

    def to_mermaid_compact(self, edge_limit: int = _COMPACT_EDGE_LIMIT) -> str:
        """Un-fenced left-to-right diagram for console output, edges capped."""
        ids = self._mermaid_ids()
        lines = ["flowchart LR"]
        for node in self.internal_modules():
            lines.append("    " + self._node_line(node, ids[node.id]))

        shown_edges = self.edges[:edge_limit]
        seen_external: set[str] = set()
        for _, dst in shown_edges:
            node = self.nodes[dst]
            if node.is_external and dst not in seen_external:
                seen_external.add(dst)
                lines.append("    " + self._node_line(node, ids[dst]))

        for src, dst in shown_edges:
            lines.append(f"    {ids[src]} --> {ids[dst]}")
        if len(self.edges) > edge_limit:
            lines.append(f"    %% ... and {len(self.edges) - edge_limit} more edges")
        return "\n".join(lines) + "\n"


def _sanitize_id(name: str) -> str:
    sanitized = re.sub(r"[^0-9A-Za-z_]", "_", name) or "_"
    if sanitized.lower() in _MERMAID_RESERVED:
        sanitized = f"mod_{sanitized}"
    return sanitized


def _escape_label(label: str) -> str:
    return label.replace('"', "#quot;")


@dataclass(frozen=True)
class GraphStats:
    internal_modules: int
    external_dependencies: int
    edge_count: int
    total_modules: int = 0
    avg_dependencies_per_module: float = 0.0
    most_connected_modules: tuple[tuple[str, int], ...] = ()   # (module, outgoing edges)
    cycles: tuple[tuple[str, ...], ...] = ()                   # internal import cycles

    @classmethod
    def from_graph(cls, graph: DependencyGraph) -> "GraphStats":
        internal = [n.id for n in graph.internal_modules()]
        edge_count = len(graph.edges)

        outgoing = Counter(src for src, _ in graph.edges)
        most_connected = sorted(outgoing.items(), key=lambda kv: (-kv[1], kv[0]))

        # Cycles: strongly connected components with size > 1, internal modules only
        g = graph.to_networkx().subgraph(internal)
        cycles = sorted(
            tuple(sorted(scc)) for scc in nx.strongly_connected_components(g) if len(scc) > 1
        )

        return cls(
            internal_modules=len(internal),
            external_dependencies=len(graph.external_dependencies()),
            edge_count=edge_count,
            total_modules=len(graph.nodes),
            avg_dependencies_per_module=edge_count / len(internal) if internal else 0.0,
            most_connected_modules=tuple(most_connected[:_MOST_CONNECTED_TOP_N]),
            cycles=tuple(cycles),
        )
