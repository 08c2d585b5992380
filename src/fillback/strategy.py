"""
Import strategies: the "code" strategy and the factory that selects one.

Every strategy conforms to ImportStrategy. The factory tries the registered
strategies in a fixed order of specificity when "auto" is requested.
"""

import logging
from pathlib import Path
from typing import Protocol

from .analyze import analyze_codebase
from .errors import StrategyError
from .graph import DependencyGraph, GraphStats
from .models import AnalysisContext, CodeStrategyConfig, FileError
from .specgen import ConfirmFn, check_existing_specs, confirm_overwrite, generate_specs

log = logging.getLogger(__name__)

DEFAULT_SPECS_DIR = "specs"


class ImportStrategy(Protocol):
    """Protocol for source importers."""

    def execute(self, source: Path, change_id: str) -> None:
        """Import *source* into the change identified by *change_id*."""
        ...

    def can_handle(self, source: Path) -> bool:
        """Return True if this strategy applies to *source*."""
        ...

    def name(self) -> str:
        ...


class CodeStrategy:
    """Derive specifications from a source tree via AST analysis."""

    def __init__(
        self,
        config: CodeStrategyConfig | None = None,
        confirm: ConfirmFn | None = None,
        clarifications: dict[str, str] | None = None,
    ):
        self.config = config or CodeStrategyConfig()
        self.confirm = confirm
        self.clarifications = clarifications or {}
        self.created_files: list[str] = []

    def name(self) -> str:
        return "code"

    def can_handle(self, source: Path) -> bool:
        return Path(source).is_dir()

    def output_dir(self) -> Path:
        if self.config.output_dir:
            return Path(self.config.output_dir)
        return Path.cwd() / DEFAULT_SPECS_DIR

    def source_dir(self, source: Path | None = None) -> Path:
        """The directory to analyze: explicit source, else config.path, else cwd."""
        if source is not None:
            return Path(source)
        if self.config.path:
            return Path(self.config.path)
        return Path.cwd()

    def analyze(self, source: Path | None = None) -> tuple[AnalysisContext, list[FileError]]:
        return analyze_codebase(
            self.source_dir(source), module_filter=self.config.module, config=self.config,
        )

    def execute(self, source: Path | None, change_id: str) -> None:
        """
        Analyze → graph → confirm → generate.

        Declining the overwrite confirmation writes nothing and returns normally.
        """
        source = self.source_dir(source)
        log.info("Scanning codebase at %s (change %s)", source, change_id)

        context, parse_errors = self.analyze(source)
        graph = DependencyGraph.from_analysis(context)
        stats = GraphStats.from_graph(graph)

        log.info(
            "Analysis: %d modules, %d symbols, %d external deps, %d edges",
            len(context.modules), context.total_symbols(),
            stats.external_dependencies, stats.edge_count,
        )
        for err in parse_errors:
            log.warning("Skipped %s: %s", err.path, err.message)

        output_dir = self.output_dir()
        existing = check_existing_specs(output_dir)
        if not confirm_overwrite(existing, force=self.config.force, confirm=self.confirm):
            log.warning("Overwrite declined; no specifications written to %s", output_dir)
            self.created_files = []
            return

        self.created_files = generate_specs(context, graph, output_dir, self.clarifications)


# Tried in order of specificity for "auto"
_STRATEGIES: dict[str, type] = {
    "code": CodeStrategy,
}


class StrategyFactory:
    """Create strategies by name, or auto-detect one for a source path."""

    @staticmethod
    def create(strategy_type: str, source: Path, **kwargs) -> ImportStrategy:
        if strategy_type == "auto":
            return StrategyFactory.auto_detect(source, **kwargs)
        cls = _STRATEGIES.get(strategy_type)
        if cls is None:
            supported = ", ".join(["auto", *_STRATEGIES])
            raise StrategyError(
                f"Invalid strategy: '{strategy_type}'. Supported strategies: {supported}"
            )
        return cls(**kwargs)

    @staticmethod
    def auto_detect(source: Path, **kwargs) -> ImportStrategy:
        for cls in _STRATEGIES.values():
            strategy = cls(**kwargs)
            if strategy.can_handle(Path(source)):
                log.info("Auto-detected strategy: %s", strategy.name())
                return strategy
        raise StrategyError(
            f"Could not auto-detect strategy for: {source}. Please specify --strategy explicitly."
        )
