"""Tree-sitter parsing with per-thread parser caching."""

import logging
import threading

from tree_sitter import Node, Parser, Tree
from tree_sitter_language_pack import get_language

from .models import Language

log = logging.getLogger(__name__)

# Parser objects are not safe to share between threads; each worker keeps its own.
_local = threading.local()


def _get_parser(language: Language) -> Parser:
    parsers: dict[Language, Parser] | None = getattr(_local, "parsers", None)
    if parsers is None:
        parsers = _local.parsers = {}
    if language not in parsers:
        lang_obj = get_language(language.value)
        parsers[language] = Parser(lang_obj)
    return parsers[language]


def parse_source(language: Language, source: bytes) -> Tree:
    """Parse source bytes with the grammar for language."""
    return _get_parser(language).parse(source)


def walk_tree(node: Node):
    """Depth-first generator over all nodes in a tree."""
    yield node
    for child in node.children:
        yield from walk_tree(child)


def text(node: Node | None) -> str:
    if node is None or not node.text:
        return ""
    return node.text.decode("utf-8", errors="replace")
