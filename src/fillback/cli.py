"""CLI entry point for fillback."""

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from .analyze import analyze_codebase
from .errors import FillbackError
from .graph import DependencyGraph, GraphStats
from .models import AnalysisContext, CodeStrategyConfig, FileError
from .strategy import CodeStrategy, StrategyFactory

log = logging.getLogger(__name__)

_MAX_ERRORS_SHOWN = 10


def _config_from_args(args: argparse.Namespace) -> CodeStrategyConfig:
    return CodeStrategyConfig(
        path=args.path,
        module=args.module,
        force=getattr(args, "force", False),
        output_dir=getattr(args, "output_dir", None),
        respect_gitignore=not args.no_gitignore,
        jobs=args.jobs,
    )


def _clarifications_from_args(args: argparse.Namespace) -> dict[str, str]:
    clarifications: dict[str, str] = {}
    if args.description:
        clarifications["project_description"] = args.description
    if args.architecture:
        clarifications["architecture_style"] = args.architecture
    if args.entry_point:
        clarifications["entry_points"] = ", ".join(args.entry_point)
    if args.public_api:
        clarifications["public_api_modules"] = ", ".join(args.public_api)
    return clarifications


def _prompt_overwrite(existing: Sequence[str]) -> bool:
    """Default confirmation collaborator: ask on the terminal."""
    print("\nExisting specifications found:", file=sys.stderr)
    for name in existing:
        print(f"  - {name}", file=sys.stderr)
    try:
        answer = input("Overwrite existing specifications? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _print_summary(context: AnalysisContext, graph: DependencyGraph) -> None:
    stats = GraphStats.from_graph(graph)
    print("Analysis Summary")
    print(f"  modules:   {len(context.modules)}")
    print(f"  symbols:   {context.total_symbols()}")
    print(f"  external:  {stats.external_dependencies}")
    print(f"  edges:     {stats.edge_count}")
    for lang, count in sorted(context.language_counts.items()):
        print(f"    {lang}: {count} files")
    if stats.most_connected_modules:
        print("  most connected:")
        for name, count in stats.most_connected_modules[:3]:
            print(f"    {name}: {count} dependencies")
    if stats.cycles:
        print("  import cycles:")
        for cycle in stats.cycles:
            print(f"    {' ↔ '.join(cycle)}")
    if context.skipped_files:
        print(f"  skipped:   {len(context.skipped_files)} files (unsupported or too large)")


def _print_errors(errors: list[FileError]) -> None:
    if not errors:
        return
    print(f"\nParse errors ({len(errors)}):", file=sys.stderr)
    for err in errors[:_MAX_ERRORS_SHOWN]:
        print(f"  {err.path}: {err.message}", file=sys.stderr)
    if len(errors) > _MAX_ERRORS_SHOWN:
        print(f"  ... and {len(errors) - _MAX_ERRORS_SHOWN} more", file=sys.stderr)


def cmd_analyze(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    root = Path(args.path).resolve()
    context, errors = analyze_codebase(root, module_filter=config.module, config=config)
    graph = DependencyGraph.from_analysis(context)

    _print_summary(context, graph)
    print("\nDependency Graph (Mermaid)")
    print(graph.to_mermaid_compact())
    _print_errors(errors)
    return 0


def cmd_graph(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    context, errors = analyze_codebase(Path(args.path).resolve(), module_filter=config.module,
                                       config=config)
    print(DependencyGraph.from_analysis(context).to_mermaid(), end="")
    _print_errors(errors)
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    source = Path(args.path).resolve()
    strategy = StrategyFactory.create(
        args.strategy,
        source,
        config=_config_from_args(args),
        confirm=_prompt_overwrite,
        clarifications=_clarifications_from_args(args),
    )
    print(f"Generating specs from {source} (strategy={strategy.name()})", file=sys.stderr)
    strategy.execute(source, args.change_id)

    if isinstance(strategy, CodeStrategy):
        if not strategy.created_files:
            print("Cancelled: no specifications written.")
            return 0
        out_dir = strategy.output_dir()
        for name in strategy.created_files:
            print(f"  {out_dir / name}")
        print(f"Generated {len(strategy.created_files)} specification files in {out_dir}")
    return 0


def _add_analysis_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("path", nargs="?", default=".", help="Source directory (default: .)")
    p.add_argument("--module", help="Only analyze the module with exactly this name")
    p.add_argument("-j", "--jobs", type=int, default=1, help="Parse files on N threads")
    p.add_argument("--no-gitignore", action="store_true", help="Do not honour .gitignore")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fillback",
        description="Derive specifications from an existing codebase",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    # analyze
    p = sub.add_parser("analyze", help="Analyze a codebase and print a summary")
    _add_analysis_args(p)

    # graph
    p = sub.add_parser("graph", help="Print the module dependency graph as Mermaid")
    _add_analysis_args(p)

    # generate
    p = sub.add_parser("generate", help="Generate specification files")
    _add_analysis_args(p)
    p.add_argument("--strategy", default="auto", help="Import strategy (default: auto)")
    p.add_argument("--change-id", default="fillback", help="Change to populate")
    p.add_argument("-o", "--output-dir", help="Output directory (default: ./specs)")
    p.add_argument("--force", action="store_true", help="Overwrite without confirmation")
    p.add_argument("--description", help="Project description for the overview")
    p.add_argument("--architecture", help="Architecture style, e.g. 'CLI Tool'")
    p.add_argument("--entry-point", action="append", help="Entry-point module (repeatable)")
    p.add_argument("--public-api", action="append", help="Public API module (repeatable)")

    return parser


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.getLogger("fillback").setLevel(logging.DEBUG)

    handlers = {
        "analyze": cmd_analyze,
        "graph": cmd_graph,
        "generate": cmd_generate,
    }

    try:
        code = handlers[args.command](args)
    except FillbackError as e:
        print(f"error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
