"""File discovery: classify extensions and walk a source tree, respecting .gitignore."""

import logging
from pathlib import Path

import pathspec

from .models import CodeStrategyConfig, Language

log = logging.getLogger(__name__)

_EXT_TO_LANG: dict[str, Language] = {
    ".rs": Language.RUST,
    ".py": Language.PYTHON,
    ".pyi": Language.PYTHON,
    ".go": Language.GO,
    ".js": Language.JAVASCRIPT,
    ".jsx": Language.JAVASCRIPT,
    ".mjs": Language.JAVASCRIPT,
    ".cjs": Language.JAVASCRIPT,
    ".ts": Language.TYPESCRIPT,
    ".mts": Language.TYPESCRIPT,
    ".cts": Language.TYPESCRIPT,
    ".tsx": Language.TSX,
}


def classify(extension: str) -> Language | None:
    """
    Map a file extension ("rs", ".py", ".TSX") to a language.

    Returns None for anything unsupported; callers treat that as "skip".
    """
    ext = extension.lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return _EXT_TO_LANG.get(ext)


def classify_path(path: str | Path) -> Language | None:
    return classify(Path(path).suffix)


def _load_gitignore_spec(root: Path) -> pathspec.PathSpec | None:
    gitignore = root / ".gitignore"
    if gitignore.exists():
        patterns = gitignore.read_text(encoding="utf-8", errors="replace").splitlines()
        return pathspec.PathSpec.from_lines("gitwildmatch", patterns)
    return None


def walk_files(root: Path, config: CodeStrategyConfig | None = None) -> list[tuple[str, Path]]:
    """
    Return (relative_path, absolute_path) for every regular file under root.

    Honours config.exclude_dirs and, when enabled, the root .gitignore.
    Relative paths use forward slashes; order is sorted traversal order.
    """
    config = config or CodeStrategyConfig()
    root = root.resolve()
    gitignore_spec = _load_gitignore_spec(root) if config.respect_gitignore else None
    exclude_dirs = set(config.exclude_dirs)

    results: list[tuple[str, Path]] = []

    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue

        rel = path.relative_to(root)
        rel_str = rel.as_posix()

        # skip excluded directories (check every directory part of the path)
        if any(part in exclude_dirs for part in rel.parts[:-1]):
            continue

        if gitignore_spec and gitignore_spec.match_file(rel_str):
            continue

        results.append((rel_str, path))

    log.info("Discovered %d files under %s", len(results), root)
    return results
