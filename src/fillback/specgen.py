"""
Markdown specification rendering.

Turns an AnalysisContext + DependencyGraph (and optional clarification text)
into `_overview.md`, `_dependency-graph.md` and one `<module>.md` per module.
Rendering is deterministic: identical inputs give byte-identical files.
"""

import logging
import os
from collections import defaultdict
from collections.abc import Callable, Sequence
from pathlib import Path

from .graph import DependencyGraph, GraphStats, is_local_root, resolve_import_target
from .models import AnalysisContext, ModuleAnalysis, SymbolKind

log = logging.getLogger(__name__)

OVERVIEW_FILE = "_overview.md"
DEPENDENCY_GRAPH_FILE = "_dependency-graph.md"

# Decides whether existing files may be overwritten; receives their names.
ConfirmFn = Callable[[Sequence[str]], bool]

_KIND_HEADINGS = [
    (SymbolKind.STRUCT, "Structs"),
    (SymbolKind.CLASS, "Classes"),
    (SymbolKind.INTERFACE, "Interfaces"),
    (SymbolKind.ENUM, "Enums"),
    (SymbolKind.TYPE_ALIAS, "Type Aliases"),
    (SymbolKind.FUNCTION, "Functions"),
    (SymbolKind.METHOD, "Methods"),
    (SymbolKind.CONST, "Constants"),
]


def _cell(value: object) -> str:
    """Escape a value for use inside a markdown table cell."""
    return str(value).replace("|", "\\|").replace("\n", " ")


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _sorted_modules(context: AnalysisContext) -> list[ModuleAnalysis]:
    return sorted(context.modules, key=lambda m: (m.module_name, m.file_path))


# ── Documents ─────────────────────────────────────────────────────────────────

def render_dependency_graph(graph: DependencyGraph, project_name: str = "Analyzed Project") -> str:
    stats = GraphStats.from_graph(graph)
    out: list[str] = [f"# Dependency Graph: {project_name}", ""]

    out += ["## Summary", "", "| Metric | Value |", "|--------|-------|"]
    out.append(f"| Internal modules | {stats.internal_modules} |")
    out.append(f"| External dependencies | {stats.external_dependencies} |")
    out.append(f"| Dependency edges | {stats.edge_count} |")
    out.append(f"| Avg dependencies/module | {stats.avg_dependencies_per_module:.1f} |")
    out.append("")

    out += ["## Module Graph", "", graph.to_mermaid()]

    out += ["## Internal Modules", "", "| Module | Path | Symbols | Public |",
            "|--------|------|---------|--------|"]
    for node in sorted(graph.internal_modules(), key=lambda n: n.id):
        out.append(f"| {_cell(node.id)} | {_cell(node.path or '')} | "
                   f"{node.symbol_count} | {node.public_symbol_count} |")
    out.append("")

    out += ["## External Dependencies", ""]
    externals = sorted(n.id for n in graph.external_dependencies())
    if externals:
        out += [f"- `{name}`" for name in externals]
    else:
        out.append("No external dependencies detected.")
    out.append("")

    if stats.cycles:
        out += ["## Import Cycles", ""]
        out += [f"- {' ↔ '.join(cycle)}" for cycle in stats.cycles]
        out.append("")

    out += ["## Dependency Details", "", "| From | To | Type |", "|------|----|------|"]
    for src, dst in graph.edges:
        kind = graph.nodes[dst].kind.value
        out.append(f"| {_cell(src)} | {_cell(dst)} | {kind} |")

    return "\n".join(out) + "\n"


def render_overview(
    context: AnalysisContext,
    graph: DependencyGraph,
    clarifications: dict[str, str] | None = None,
) -> str:
    clarifications = clarifications or {}
    stats = GraphStats.from_graph(graph)
    out: list[str] = ["# Specification: Project Overview", ""]

    out += ["## Summary", ""]
    out.append(f"Codebase of {len(context.modules)} modules and "
               f"{context.total_symbols()} symbols.")
    out.append("")

    description = clarifications.get("project_description", "").strip()
    if description:
        out += ["## Project Description", "", description, ""]
    else:
        out += ["(Auto-generated from codebase analysis)", ""]

    style = clarifications.get("architecture_style", "").strip()
    if style:
        out += ["## Architecture Style", "", style, ""]

    out += ["## Module Structure", "", "| Module | Language | Symbols | Public |",
            "|--------|----------|---------|--------|"]
    for module in _sorted_modules(context):
        out.append(f"| {_cell(module.module_name)} | {module.language.display_name} | "
                   f"{len(module.symbols)} | {len(module.public_symbols)} |")
    out.append("")

    entry_points = _split_list(clarifications.get("entry_points", ""))
    if entry_points:
        out += ["## Entry Points", ""]
        out += [f"- `{entry}`" for entry in entry_points]
        out.append("")

    public_api = _split_list(clarifications.get("public_api_modules", ""))
    if public_api:
        out += ["## Public API Modules", ""]
        out += [f"- `{name}`" for name in public_api]
        out.append("")

    out += ["## Dependencies", ""]
    out.append(f"- **Internal modules**: {stats.internal_modules}")
    out.append(f"- **External dependencies**: {stats.external_dependencies}")
    out.append(f"- **Avg dependencies/module**: {stats.avg_dependencies_per_module:.1f}")
    out.append("")
    if stats.most_connected_modules:
        out += ["### Most Connected Modules", ""]
        out += [f"- `{name}`: {count} dependencies" for name, count in stats.most_connected_modules]
        out.append("")

    out += ["## Language Breakdown", ""]
    for lang, count in sorted(context.language_counts.items()):
        out.append(f"- {lang}: {count} files")

    return "\n".join(out) + "\n"


def _render_module_section(module: ModuleAnalysis, internal_names: set[str]) -> list[str]:
    out: list[str] = []
    out.append(f"Module `{module.module_name}` ({module.language.display_name}, "
               f"`{module.file_path}`) containing {len(module.symbols)} symbols, "
               f"{len(module.public_symbols)} public.")
    out.append("")

    by_kind = defaultdict(list)
    for sym in module.symbols:
        by_kind[sym.kind].append(sym)

    if by_kind:
        out += ["## Symbols", ""]
    for kind, heading in _KIND_HEADINGS:
        if not by_kind[kind]:
            continue
        out += [f"### {heading}", "", "| Name | Visibility | Line | Description |",
                "|------|------------|------|-------------|"]
        for sym in by_kind[kind]:
            vis = "Public" if sym.is_public else "Private"
            out.append(f"| `{_cell(sym.name)}` | {vis} | {sym.line} | {_cell(sym.doc or '')} |")
        out.append("")

    signatures = [s for s in module.symbols if s.signature]
    if signatures:
        out += ["## Interfaces", "", "```"]
        for sym in signatures:
            if sym.doc:
                out.append(f"// {sym.doc}")
            out.append(sym.signature)
        out += ["```", ""]

    if module.imports:
        out += ["## Dependencies", ""]
        for imp in module.imports:
            if resolve_import_target(imp.raw_path, internal_names):
                scope = "internal"
            elif is_local_root(imp.raw_path):
                scope = "local"
            else:
                scope = "external"
            out.append(f"- `{imp.raw_path}` ({scope})")
        out.append("")

    return out


def render_module(modules: Sequence[ModuleAnalysis], internal_names: set[str]) -> str:
    """Render one module document; same-named modules get one section per file."""
    name = modules[0].module_name
    out: list[str] = [f"# Specification: {name}", "", "## Overview", ""]
    if len(modules) == 1:
        out += _render_module_section(modules[0], internal_names)
    else:
        for module in modules:
            out += [f"## File: `{module.file_path}`", ""]
            out += _render_module_section(module, internal_names)
    return "\n".join(out).rstrip("\n") + "\n"


# ── Writing ───────────────────────────────────────────────────────────────────

def render_specs(
    context: AnalysisContext,
    graph: DependencyGraph,
    clarifications: dict[str, str] | None = None,
) -> dict[str, str]:
    """Render every output document in memory: file name → content, in output order."""
    docs: dict[str, str] = {
        DEPENDENCY_GRAPH_FILE: render_dependency_graph(graph),
        OVERVIEW_FILE: render_overview(context, graph, clarifications),
    }
    grouped: dict[str, list[ModuleAnalysis]] = defaultdict(list)
    for module in _sorted_modules(context):
        grouped[module.module_name].append(module)
    internal_names = set(grouped)
    for name, modules in grouped.items():
        filename = f"{name}.md"
        if filename in docs:
            log.warning("Module %s collides with %s; not rendered", name, filename)
            continue
        docs[filename] = render_module(modules, internal_names)
    return docs


def generate_specs(
    context: AnalysisContext,
    graph: DependencyGraph,
    output_dir: str | Path,
    clarifications: dict[str, str] | None = None,
) -> list[str]:
    """
    Write the specification documents into output_dir (created if absent).

    Everything is rendered before the first write. Files not being
    regenerated are left alone. Returns the created file names.
    """
    docs = render_specs(context, graph, clarifications)

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    for name, content in docs.items():
        target = output_dir / name
        tmp = target.with_name(f".{name}.tmp")
        try:
            tmp.write_text(content, encoding="utf-8")
            os.replace(tmp, target)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
        log.debug("Wrote %s", target)

    log.info("Generated %d specification files in %s", len(docs), output_dir)
    return list(docs)


def check_existing_specs(output_dir: str | Path) -> list[str]:
    """Names of the .md files already present in output_dir."""
    output_dir = Path(output_dir)
    if not output_dir.is_dir():
        return []
    return sorted(p.name for p in output_dir.iterdir() if p.is_file() and p.suffix == ".md")


def confirm_overwrite(
    existing_files: Sequence[str],
    force: bool = False,
    confirm: ConfirmFn | None = None,
) -> bool:
    """
    Decide whether generation may proceed.

    Force mode always proceeds; with nothing to overwrite there is nothing to
    ask. Otherwise the injected confirm collaborator decides; without one the
    answer is no.
    """
    if force:
        return True
    if not existing_files:
        return True
    if confirm is None:
        log.warning("%d existing specs and no confirmation available", len(existing_files))
        return False
    return bool(confirm(existing_files))
