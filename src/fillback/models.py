"""Core data structures for fillback."""

from dataclasses import dataclass, field
from enum import Enum


class Language(str, Enum):
    RUST = "rust"
    PYTHON = "python"
    GO = "go"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    TSX = "tsx"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    Language.RUST: "Rust",
    Language.PYTHON: "Python",
    Language.GO: "Go",
    Language.JAVASCRIPT: "JavaScript",
    Language.TYPESCRIPT: "TypeScript",
    Language.TSX: "TypeScript",
}


class SymbolKind(str, Enum):
    FUNCTION = "function"
    METHOD = "method"
    STRUCT = "struct"
    CLASS = "class"
    ENUM = "enum"
    INTERFACE = "interface"
    TYPE_ALIAS = "type_alias"
    CONST = "const"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


@dataclass(frozen=True)
class Symbol:
    name: str                           # never empty
    kind: SymbolKind
    visibility: Visibility = Visibility.PRIVATE
    line: int = 0                       # 1-based start line
    signature: str | None = None        # "helper(x: i32) -> String"
    doc: str | None = None              # first doc comment / docstring

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Symbol name must not be empty")

    @property
    def is_public(self) -> bool:
        return self.visibility is Visibility.PUBLIC


@dataclass(frozen=True)
class ImportEdge:
    """An unclassified import: internal vs. external is decided at graph-build time."""
    raw_path: str                       # "crate::config", "os.path", "./utils"


@dataclass(frozen=True)
class ModuleAnalysis:
    module_name: str                    # file stem, e.g. "config"
    language: Language
    file_path: str                      # relative to the analyzed root
    symbols: tuple[Symbol, ...] = ()
    imports: tuple[ImportEdge, ...] = ()

    @property
    def public_symbols(self) -> list[Symbol]:
        return [s for s in self.symbols if s.is_public]


@dataclass(frozen=True)
class FileError:
    path: str
    message: str


@dataclass(frozen=True)
class AnalysisContext:
    """
    Result of one analyze_codebase() call.

    Every visited file appears in exactly one of modules, skipped_files,
    errors or filtered_files.
    """
    modules: tuple[ModuleAnalysis, ...] = ()
    language_counts: dict[str, int] = field(default_factory=dict)
    skipped_files: tuple[str, ...] = ()
    errors: tuple[FileError, ...] = ()
    filtered_files: tuple[str, ...] = ()    # parsed, but excluded by the module filter

    def total_symbols(self) -> int:
        return sum(len(m.symbols) for m in self.modules)

    def module_names(self) -> set[str]:
        return {m.module_name for m in self.modules}


@dataclass
class CodeStrategyConfig:
    path: str | None = None             # source directory (default: cwd)
    module: str | None = None           # exact module-name filter
    force: bool = False                 # overwrite without confirmation
    output_dir: str | None = None       # default: <cwd>/specs
    exclude_dirs: list[str] = field(default_factory=lambda: [
        ".git", "__pycache__", ".venv", "venv", "node_modules",
        "target", "build", "dist", ".mypy_cache", ".pytest_cache",
    ])
    max_file_size: int = 100_000        # bytes; larger files are skipped
    respect_gitignore: bool = True
    jobs: int = 1                       # >1 parses files on a thread pool
