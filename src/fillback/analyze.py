"""
Analysis pipeline: wires discover → classify → parse/extract → fold into an AnalysisContext.
"""

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from .discover import classify_path, walk_files
from .errors import AnalysisError, ParseError
from .extract import parse_file
from .models import AnalysisContext, CodeStrategyConfig, FileError, ModuleAnalysis

log = logging.getLogger(__name__)

# Per-file outcome: a module, a recoverable error, or a skip reason
_Outcome = ModuleAnalysis | FileError | str


@dataclass
class _Accumulator:
    modules: list[ModuleAnalysis] = field(default_factory=list)
    language_counts: Counter = field(default_factory=Counter)
    skipped_files: list[str] = field(default_factory=list)
    errors: list[FileError] = field(default_factory=list)
    filtered_files: list[str] = field(default_factory=list)

    def add(self, rel_path: str, outcome: _Outcome, module_filter: str | None) -> None:
        if isinstance(outcome, ModuleAnalysis):
            if module_filter is not None and outcome.module_name != module_filter:
                self.filtered_files.append(rel_path)
                return
            self.modules.append(outcome)
            self.language_counts[outcome.language.display_name] += 1
        elif isinstance(outcome, FileError):
            self.errors.append(outcome)
        else:
            log.debug("Skipping %s (%s)", rel_path, outcome)
            self.skipped_files.append(rel_path)

    def freeze(self) -> AnalysisContext:
        return AnalysisContext(
            modules=tuple(self.modules),
            language_counts=dict(self.language_counts),
            skipped_files=tuple(self.skipped_files),
            errors=tuple(self.errors),
            filtered_files=tuple(self.filtered_files),
        )


def _analyze_file(rel_path: str, abs_path: Path, max_file_size: int) -> _Outcome:
    """Classify, read and parse a single file. Raises AnalysisError on I/O failure."""
    if classify_path(rel_path) is None:
        return "unsupported extension"

    try:
        if abs_path.stat().st_size > max_file_size:
            return f"larger than {max_file_size} bytes"
        content = abs_path.read_bytes()
    except OSError as e:
        raise AnalysisError(f"Cannot read {abs_path}: {e}") from e

    try:
        return parse_file(rel_path, content)
    except ParseError as e:
        log.warning("Parse error in %s: %s", rel_path, e.message)
        return FileError(path=rel_path, message=e.message)


def analyze_codebase(
    root: str | Path,
    module_filter: str | None = None,
    config: CodeStrategyConfig | None = None,
) -> tuple[AnalysisContext, list[FileError]]:
    """
    Analyze every file under root and return (context, per-file errors).

    module_filter keeps only modules whose name equals it exactly.
    Raises AnalysisError when root is not a directory, a file cannot be
    read, or no module survives parsing and filtering.
    """
    config = config or CodeStrategyConfig()
    root = Path(root)
    if not root.is_dir():
        raise AnalysisError(f"Source path is not a directory: {root}")

    try:
        files = walk_files(root, config)
    except OSError as e:
        raise AnalysisError(f"Cannot walk {root}: {e}") from e

    if config.jobs > 1 and len(files) > 1:
        with ThreadPoolExecutor(max_workers=config.jobs) as pool:
            outcomes = list(pool.map(
                lambda f: _analyze_file(f[0], f[1], config.max_file_size), files,
            ))
    else:
        outcomes = [_analyze_file(rel, path, config.max_file_size) for rel, path in files]

    # the fold is the only synchronization point: serial, in traversal order
    acc = _Accumulator()
    for (rel_path, _), outcome in zip(files, outcomes):
        acc.add(rel_path, outcome, module_filter)
    context = acc.freeze()

    log.info(
        "Analyzed %d files: %d modules, %d skipped, %d errors, %d filtered",
        len(files), len(context.modules), len(context.skipped_files),
        len(context.errors), len(context.filtered_files),
    )

    if not context.modules:
        if module_filter is not None:
            raise AnalysisError(f"No modules matching '{module_filter}' found in {root}")
        if not files:
            raise AnalysisError(f"No files found in: {root}")
        raise AnalysisError(f"Failed to parse any supported source files in: {root}")

    return context, list(context.errors)
