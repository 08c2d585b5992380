"""
Symbol and import extraction from tree-sitter ASTs.

One pure extraction function per language, dispatched through a flat table.
Uses tree-walking (child_by_field_name, node.children) rather than the
Query API, which was removed in tree-sitter 0.25.
"""

import dataclasses
import logging
from pathlib import Path

from tree_sitter import Node, Tree

from .discover import classify_path
from .errors import ParseError
from .models import ImportEdge, Language, ModuleAnalysis, Symbol, SymbolKind, Visibility
from .parse import parse_source, text, walk_tree

log = logging.getLogger(__name__)


def _vis(public: bool) -> Visibility:
    return Visibility.PUBLIC if public else Visibility.PRIVATE


def _line(node: Node) -> int:
    return node.start_point[0] + 1


def _unquote(s: str) -> str:
    return s.strip().strip("'\"`")


def _preceding_comment(
    lines: list[str], row: int, prefix: str, skip: tuple[str, ...] = ()
) -> str | None:
    """Collect the run of `prefix` comment lines directly above row."""
    doc_lines: list[str] = []
    r = row - 1
    while r >= 0:
        line = lines[r].strip()
        if line.startswith(prefix):
            doc_lines.insert(0, line[len(prefix):].strip())
        elif skip and line.startswith(skip):
            pass
        else:
            break
        r -= 1
    doc = " ".join(d for d in doc_lines if d)
    return doc or None


def _signature(name: str, node: Node, result_field: str = "return_type", arrow: str = " -> ") -> str:
    sig = name + (text(node.child_by_field_name("parameters")) or "()")
    ret = node.child_by_field_name(result_field)
    if ret is not None:
        ret_text = text(ret)
        # TypeScript return types already carry their ": "
        sig += ret_text if ret_text.startswith(":") else arrow + ret_text
    return sig


# ── Rust ──────────────────────────────────────────────────────────────────────

_RUST_KINDS = {
    "function_item": SymbolKind.FUNCTION,
    "struct_item": SymbolKind.STRUCT,
    "enum_item": SymbolKind.ENUM,
    "trait_item": SymbolKind.INTERFACE,
    "type_item": SymbolKind.TYPE_ALIAS,
    "const_item": SymbolKind.CONST,
    "static_item": SymbolKind.CONST,
}


def _rust_is_pub(node: Node) -> bool:
    return any(child.type == "visibility_modifier" for child in node.children)


def _rust_symbol(node: Node, kind: SymbolKind, lines: list[str]) -> Symbol | None:
    name = text(node.child_by_field_name("name"))
    if not name:
        return None
    sig = None
    if kind in (SymbolKind.FUNCTION, SymbolKind.METHOD):
        sig = _signature(name, node)
    return Symbol(
        name=name,
        kind=kind,
        visibility=_vis(_rust_is_pub(node)),
        line=_line(node),
        signature=sig,
        doc=_preceding_comment(lines, node.start_point[0], "///", skip=("#[", "//")),
    )


def _split_top_level(group: str) -> list[str]:
    """Split "a, b::{c, d}" on commas outside nested braces."""
    items: list[str] = []
    depth, start = 0, 0
    for i, ch in enumerate(group):
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        elif ch == "," and depth == 0:
            items.append(group[start:i])
            start = i + 1
    items.append(group[start:])
    return [item.strip() for item in items if item.strip()]


def _expand_use_tree(tree: str, prefix: str = "") -> list[str]:
    tree = " ".join(tree.split())
    brace = tree.find("{")
    if brace == -1:
        path = tree.split(" as ", 1)[0].strip()
        if path == "self":
            path = ""
        path = prefix + path if path else prefix.removesuffix("::")
        path = path.removesuffix("::*").removesuffix("*").removesuffix("::")
        return [path] if path else []

    head = tree[:brace]
    inner = tree[brace + 1:tree.rfind("}")]
    paths: list[str] = []
    for item in _split_top_level(inner):
        paths.extend(_expand_use_tree(item, prefix + head))
    return paths


def _rust_use_paths(node: Node) -> list[str]:
    """
    "use std::path::Path;"                  → ["std::path::Path"]
    "use crate::config::{A, B};"            → ["crate::config::A", "crate::config::B"]
    "use crate::{config::Config, utils};"   → ["crate::config::Config", "crate::utils"]
    "use crate::io::{self, Read};"          → ["crate::io", "crate::io::Read"]
    "use super::*;"                         → ["super"]
    "use serde::Serialize as Ser;"          → ["serde::Serialize"]
    """
    arg = node.child_by_field_name("argument")
    if arg is not None:
        raw = text(arg).strip()
    else:
        raw = text(node).strip().rstrip(";")
        raw = raw[raw.index("use") + 3:].strip() if "use" in raw else raw
    return _expand_use_tree(raw.removeprefix("::"))


def _extract_rust(root: Node, lines: list[str]) -> tuple[list[Symbol], list[ImportEdge]]:
    symbols: list[Symbol] = []
    imports: list[ImportEdge] = []

    for node in root.children:
        kind = _RUST_KINDS.get(node.type)
        if kind is not None:
            sym = _rust_symbol(node, kind, lines)
            if sym:
                symbols.append(sym)

        elif node.type == "impl_item":
            body = node.child_by_field_name("body")
            if body is None:
                continue
            for item in body.children:
                if item.type == "function_item":
                    sym = _rust_symbol(item, SymbolKind.METHOD, lines)
                    if sym:
                        symbols.append(sym)

        elif node.type == "use_declaration":
            imports.extend(ImportEdge(p) for p in _rust_use_paths(node))

        elif node.type == "mod_item":
            # `mod foo;` pulls in foo.rs; inline `mod foo { ... }` does not
            name = text(node.child_by_field_name("name"))
            if name and node.child_by_field_name("body") is None:
                imports.append(ImportEdge(name))

    return symbols, imports


# ── Python ────────────────────────────────────────────────────────────────────

def _py_docstring(node: Node) -> str | None:
    body = node.child_by_field_name("body")
    if body is None or not body.named_children:
        return None
    first = body.named_children[0]
    if first.type != "expression_statement" or not first.named_children:
        return None
    string = first.named_children[0]
    if string.type != "string":
        return None
    raw = text(string).lstrip("rRbBuUfF")
    for quote in ('"""', "'''", '"', "'"):
        if raw.startswith(quote) and raw.endswith(quote) and len(raw) >= 2 * len(quote):
            raw = raw[len(quote):-len(quote)]
            break
    for line in raw.splitlines():
        if line.strip():
            return line.strip()
    return None


def _py_def(node: Node) -> Node:
    """Unwrap decorated_definition to the underlying def/class."""
    if node.type == "decorated_definition":
        inner = node.child_by_field_name("definition")
        if inner is not None:
            return inner
    return node


def _py_function(node: Node, kind: SymbolKind) -> Symbol | None:
    name = text(node.child_by_field_name("name"))
    if not name:
        return None
    return Symbol(
        name=name,
        kind=kind,
        visibility=_vis(not name.startswith("_")),
        line=_line(node),
        signature=_signature(name, node),
        doc=_py_docstring(node),
    )


def _py_const(node: Node) -> Symbol | None:
    """Module-level ALL_CAPS assignment → Const."""
    if not node.named_children or node.named_children[0].type != "assignment":
        return None
    target = node.named_children[0].child_by_field_name("left")
    if target is None or target.type != "identifier":
        return None
    name = text(target)
    if not name.isupper():
        return None
    return Symbol(
        name=name,
        kind=SymbolKind.CONST,
        visibility=_vis(not name.startswith("_")),
        line=_line(node),
    )


def _py_dotted(node: Node) -> str:
    if node.type == "aliased_import":
        return text(node.child_by_field_name("name"))
    return text(node)


def _py_imports(node: Node) -> list[str]:
    """
    "import os, a.b as c"        → ["os", "a.b"]
    "from typing import List"    → ["typing"]
    "from .config import X"      → [".config"]
    "from . import utils, cfg"   → [".utils", ".cfg"]
    """
    if node.type == "import_statement":
        return [p for p in (_py_dotted(n) for n in node.children_by_field_name("name")) if p]

    module = text(node.child_by_field_name("module_name")).strip()
    if module and module.strip(".") == "":
        # bare relative import: the imported names are the modules
        names = [_py_dotted(n) for n in node.children_by_field_name("name")]
        return [module + n for n in names if n]
    return [module] if module else []


def _extract_python(root: Node, lines: list[str]) -> tuple[list[Symbol], list[ImportEdge]]:
    symbols: list[Symbol] = []
    imports: list[ImportEdge] = []

    for child in root.children:
        node = _py_def(child)
        if node.type == "function_definition":
            sym = _py_function(node, SymbolKind.FUNCTION)
            if sym:
                symbols.append(sym)

        elif node.type == "class_definition":
            name = text(node.child_by_field_name("name"))
            if not name:
                continue
            symbols.append(Symbol(
                name=name,
                kind=SymbolKind.CLASS,
                visibility=_vis(not name.startswith("_")),
                line=_line(node),
                doc=_py_docstring(node),
            ))
            body = node.child_by_field_name("body")
            for member in body.children if body is not None else []:
                member = _py_def(member)
                if member.type == "function_definition":
                    sym = _py_function(member, SymbolKind.METHOD)
                    if sym:
                        symbols.append(sym)

        elif node.type == "expression_statement":
            sym = _py_const(node)
            if sym:
                symbols.append(sym)

    # imports may be nested (if TYPE_CHECKING:, try/except ImportError, ...)
    for node in walk_tree(root):
        if node.type in ("import_statement", "import_from_statement"):
            imports.extend(ImportEdge(p) for p in _py_imports(node))

    return symbols, imports


# ── Go ────────────────────────────────────────────────────────────────────────

def _go_is_exported(name: str) -> bool:
    return bool(name) and name[0].isupper()


def _go_symbol(node: Node, name_node: Node | None, kind: SymbolKind, lines: list[str],
               anchor: Node | None = None) -> Symbol | None:
    name = text(name_node)
    if not name:
        return None
    sig = None
    if kind in (SymbolKind.FUNCTION, SymbolKind.METHOD):
        sig = _signature(name, node, result_field="result", arrow=" ")
    anchor = anchor or node
    return Symbol(
        name=name,
        kind=kind,
        visibility=_vis(_go_is_exported(name)),
        line=_line(node),
        signature=sig,
        doc=_preceding_comment(lines, anchor.start_point[0], "//"),
    )


def _go_type_kind(spec: Node) -> SymbolKind:
    type_node = spec.child_by_field_name("type")
    if spec.type == "type_spec" and type_node is not None:
        if type_node.type == "struct_type":
            return SymbolKind.STRUCT
        if type_node.type == "interface_type":
            return SymbolKind.INTERFACE
    return SymbolKind.TYPE_ALIAS


def _go_import_paths(node: Node) -> list[str]:
    paths: list[str] = []
    for spec in walk_tree(node):
        if spec.type == "import_spec":
            path = _unquote(text(spec.child_by_field_name("path")))
            if path:
                paths.append(path)
    return paths


def _extract_go(root: Node, lines: list[str]) -> tuple[list[Symbol], list[ImportEdge]]:
    symbols: list[Symbol] = []
    imports: list[ImportEdge] = []

    def _add(sym: Symbol | None) -> None:
        if sym:
            symbols.append(sym)

    for node in root.children:
        if node.type == "function_declaration":
            _add(_go_symbol(node, node.child_by_field_name("name"), SymbolKind.FUNCTION, lines))

        elif node.type == "method_declaration":
            _add(_go_symbol(node, node.child_by_field_name("name"), SymbolKind.METHOD, lines))

        elif node.type == "type_declaration":
            for spec in node.named_children:
                if spec.type in ("type_spec", "type_alias"):
                    _add(_go_symbol(spec, spec.child_by_field_name("name"),
                                    _go_type_kind(spec), lines, anchor=node))

        elif node.type == "const_declaration":
            for spec in node.named_children:
                if spec.type != "const_spec":
                    continue
                for name_node in spec.children_by_field_name("name"):
                    _add(_go_symbol(spec, name_node, SymbolKind.CONST, lines, anchor=node))

        elif node.type == "import_declaration":
            imports.extend(ImportEdge(p) for p in _go_import_paths(node))

    return symbols, imports


# ── JavaScript / TypeScript ───────────────────────────────────────────────────

_JS_DECL_KINDS = {
    "function_declaration": SymbolKind.FUNCTION,
    "generator_function_declaration": SymbolKind.FUNCTION,
    "class_declaration": SymbolKind.CLASS,
    "abstract_class_declaration": SymbolKind.CLASS,
    "interface_declaration": SymbolKind.INTERFACE,
    "type_alias_declaration": SymbolKind.TYPE_ALIAS,
    "enum_declaration": SymbolKind.ENUM,
}

_JS_FUNCTION_VALUES = ("arrow_function", "function", "function_expression", "generator_function")


def _jsdoc(lines: list[str], row: int) -> str | None:
    r = row - 1
    if r < 0 or not lines[r].strip().endswith("*/"):
        return None
    block: list[str] = []
    while r >= 0:
        line = lines[r].strip()
        block.insert(0, line)
        if line.startswith("/**"):
            break
        if line.startswith("/*"):
            return None  # plain block comment, not JSDoc
        r -= 1
    else:
        return None

    cleaned = []
    for line in block:
        line = line.removeprefix("/**").removesuffix("*/").strip().lstrip("*").strip()
        if line and not line.startswith("@"):
            cleaned.append(line)
    return " ".join(cleaned) or None


def _js_string_arg(call: Node) -> str | None:
    args = call.child_by_field_name("arguments")
    if args is None or not args.named_children:
        return None
    first = args.named_children[0]
    if first.type not in ("string", "template_string"):
        return None
    return _unquote(text(first)) or None


def _js_class_members(node: Node, exported: bool, lines: list[str]) -> list[Symbol]:
    members: list[Symbol] = []
    body = node.child_by_field_name("body")
    for member in body.named_children if body is not None else []:
        if member.type not in ("method_definition", "abstract_method_signature"):
            continue
        name_node = member.child_by_field_name("name")
        name = text(name_node)
        if not name or name == "constructor":
            continue
        private = name_node.type == "private_property_identifier" or any(
            c.type == "accessibility_modifier" and text(c) in ("private", "protected")
            for c in member.children
        )
        members.append(Symbol(
            name=name,
            kind=SymbolKind.METHOD,
            visibility=_vis(exported and not private),
            line=_line(member),
            signature=_signature(name, member, arrow=": "),
            doc=_jsdoc(lines, member.start_point[0]),
        ))
    return members


def _js_declaration(node: Node, exported: bool, anchor: Node, lines: list[str]) -> list[Symbol]:
    """Symbols declared by one top-level declaration node."""
    doc = _jsdoc(lines, anchor.start_point[0])

    kind = _JS_DECL_KINDS.get(node.type)
    if kind is not None:
        name = text(node.child_by_field_name("name"))
        if not name:
            return []
        sig = _signature(name, node, arrow=": ") if kind is SymbolKind.FUNCTION else None
        symbols = [Symbol(name=name, kind=kind, visibility=_vis(exported),
                          line=_line(node), signature=sig, doc=doc)]
        if kind is SymbolKind.CLASS:
            symbols.extend(_js_class_members(node, exported, lines))
        return symbols

    if node.type == "lexical_declaration" and text(node.child_by_field_name("kind")) in ("const", "let"):
        symbols = []
        for decl in node.named_children:
            if decl.type != "variable_declarator":
                continue
            name_node = decl.child_by_field_name("name")
            if name_node is None or name_node.type != "identifier":
                continue  # destructuring patterns
            name = text(name_node)
            value = decl.child_by_field_name("value")
            if value is not None and value.type in _JS_FUNCTION_VALUES:
                symbols.append(Symbol(name=name, kind=SymbolKind.FUNCTION,
                                      visibility=_vis(exported), line=_line(node),
                                      signature=_signature(name, value, arrow=": "), doc=doc))
            else:
                symbols.append(Symbol(name=name, kind=SymbolKind.CONST,
                                      visibility=_vis(exported), line=_line(node), doc=doc))
        return symbols

    return []


def _extract_js(root: Node, lines: list[str]) -> tuple[list[Symbol], list[ImportEdge]]:
    symbols: list[Symbol] = []
    imports: list[ImportEdge] = []
    exported_names: set[str] = set()

    for node in root.children:
        if node.type == "import_statement":
            source = _unquote(text(node.child_by_field_name("source")))
            if source:
                imports.append(ImportEdge(source))

        elif node.type == "export_statement":
            source = node.child_by_field_name("source")
            if source is not None:
                imports.append(ImportEdge(_unquote(text(source))))
            for child in node.named_children:
                if child.type == "export_clause":
                    for spec in child.named_children:
                        if spec.type == "export_specifier":
                            exported_names.add(text(spec.child_by_field_name("name")))
                else:
                    symbols.extend(_js_declaration(child, True, node, lines))

        else:
            symbols.extend(_js_declaration(node, False, node, lines))

    # `export { a, b }` after the fact
    if exported_names:
        symbols = [
            dataclasses.replace(s, visibility=Visibility.PUBLIC)
            if s.name in exported_names and s.kind is not SymbolKind.METHOD else s
            for s in symbols
        ]

    for node in walk_tree(root):
        if node.type != "call_expression":
            continue
        func = node.child_by_field_name("function")
        if func is None:
            continue
        if (func.type == "identifier" and text(func) == "require") or func.type == "import":
            target = _js_string_arg(node)
            if target:
                imports.append(ImportEdge(target))

    return symbols, imports


# ── Dispatch ──────────────────────────────────────────────────────────────────

_EXTRACTORS = {
    Language.RUST: _extract_rust,
    Language.PYTHON: _extract_python,
    Language.GO: _extract_go,
    Language.JAVASCRIPT: _extract_js,
    Language.TYPESCRIPT: _extract_js,
    Language.TSX: _extract_js,
}


def extract(language: Language, tree: Tree, source: str) -> tuple[list[Symbol], list[ImportEdge]]:
    """Extract symbols and imports from a parsed tree."""
    return _EXTRACTORS[language](tree.root_node, source.splitlines())


def parse_file(path: str | Path, content: str | bytes) -> ModuleAnalysis:
    """
    Analyze one source file.

    path is used for the language (extension) and module name (stem) only.
    Raises ParseError when the file cannot be analyzed.
    """
    path_str = Path(path).as_posix()
    language = classify_path(path)
    if language is None:
        raise ParseError(path_str, f"Unsupported file extension: {Path(path).suffix or '(none)'}")

    if isinstance(content, bytes):
        try:
            source = content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(path_str, f"Not valid UTF-8: {e.reason} at byte {e.start}") from e
        raw = content
    else:
        source = content
        raw = content.encode("utf-8")

    try:
        tree = parse_source(language, raw)
    except ValueError as e:
        raise ParseError(path_str, f"Parser failed: {e}") from e

    root = tree.root_node
    if root.type == "ERROR":
        raise ParseError(path_str, "Syntax error: no recoverable top-level structure")
    if root.has_error:
        log.debug("Tolerating syntax errors in %s", path_str)

    try:
        symbols, imports = extract(language, tree, source)
    except (AttributeError, TypeError, ValueError) as e:
        log.warning("Extraction error in %s (%s): %s", path_str, language.value, e, exc_info=True)
        raise ParseError(path_str, f"Extraction failed: {e}") from e

    return ModuleAnalysis(
        module_name=Path(path).stem,
        language=language,
        file_path=path_str,
        symbols=tuple(symbols),
        imports=tuple(imports),
    )
