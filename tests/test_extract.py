from types import SimpleNamespace

import pytest

from fillback.errors import ParseError
from fillback.extract import parse_file
from fillback.models import Language, SymbolKind, Visibility

from conftest import RUST_CONFIG, RUST_MAIN, RUST_UTILS


def _sym(module, name):
    matches = [s for s in module.symbols if s.name == name]
    assert matches, f"{name} not found in {[s.name for s in module.symbols]}"
    return matches[0]


def _imports(module):
    return [i.raw_path for i in module.imports]


# ── Rust ──────────────────────────────────────────────────────────────────────

def test_rust_config_module():
    module = parse_file("src/config.rs", RUST_CONFIG)

    assert module.module_name == "config"
    assert module.language is Language.RUST
    assert module.file_path == "src/config.rs"

    config = _sym(module, "Config")
    assert (config.kind, config.visibility) == (SymbolKind.STRUCT, Visibility.PUBLIC)
    assert config.doc == "Application settings."

    error = _sym(module, "ConfigError")
    assert (error.kind, error.visibility) == (SymbolKind.ENUM, Visibility.PUBLIC)


def test_rust_impl_methods_are_flattened():
    module = parse_file("config.rs", RUST_CONFIG)

    load = _sym(module, "load")
    assert load.kind is SymbolKind.METHOD
    assert load.is_public
    assert load.signature.startswith("load()")


def test_rust_visibility_and_signatures():
    module = parse_file("utils.rs", RUST_UTILS)

    assert _sym(module, "helper").visibility is Visibility.PUBLIC
    assert _sym(module, "format_string").visibility is Visibility.PUBLIC
    assert _sym(module, "internal_fn").visibility is Visibility.PRIVATE
    assert _sym(module, "helper").signature == "helper(s: &str) -> String"
    assert _imports(module) == ["std::collections::HashMap"]


def test_rust_mod_declarations_and_use_become_imports():
    module = parse_file("main.rs", RUST_MAIN)

    assert _imports(module) == ["config", "utils", "config::Config"]
    assert _sym(module, "main").visibility is Visibility.PRIVATE


def test_rust_other_item_kinds():
    source = """\
use crate::models::{Foo, Bar};
use super::*;

pub trait Store {
    fn get(&self) -> u32;
}

pub type Id = u64;
pub const MAX: usize = 10;
static COUNTER: u32 = 0;

mod inline {
    pub fn nested() {}
}
"""
    module = parse_file("lib.rs", source)

    assert _sym(module, "Store").kind is SymbolKind.INTERFACE
    assert _sym(module, "Id").kind is SymbolKind.TYPE_ALIAS
    assert _sym(module, "MAX").kind is SymbolKind.CONST
    assert _sym(module, "MAX").is_public
    counter = _sym(module, "COUNTER")
    assert (counter.kind, counter.visibility) == (SymbolKind.CONST, Visibility.PRIVATE)
    # inline modules are not file dependencies
    assert _imports(module) == ["crate::models::Foo", "crate::models::Bar", "super"]


@pytest.mark.parametrize("use, expected", [
    ("use crate::{config::Config, utils};", ["crate::config::Config", "crate::utils"]),
    ("use crate::io::{self, Read};", ["crate::io", "crate::io::Read"]),
    ("use a::{b::{c, d}, e as f};", ["a::b::c", "a::b::d", "a::e"]),
    ("use crate::{\n    config,\n    utils::*,\n};", ["crate::config", "crate::utils"]),
    ("use serde::Serialize as Ser;", ["serde::Serialize"]),
    ("use ::std::fmt;", ["std::fmt"]),
])
def test_rust_use_groups_expand_per_item(use, expected):
    assert _imports(parse_file("lib.rs", use + "\n")) == expected


# ── Python ────────────────────────────────────────────────────────────────────

PYTHON_SOURCE = '''\
import os
import json, xml.etree.ElementTree as ET
from typing import List
from .config import Settings
from . import utils

MAX_RETRIES = 3
_CACHE_SIZE = 10
logger = None


def public_function(x: int) -> str:
    """Convert x to a string.

    More detail here.
    """
    return str(x)


def _private_function():
    pass


class TestClass:
    """A test class."""

    def method(self):
        pass

    @property
    def _hidden(self):
        return 1


@decorator
def decorated():
    pass


if TYPE_CHECKING:
    from collections import abc
'''


def test_python_symbols_and_visibility():
    module = parse_file("pkg/service.py", PYTHON_SOURCE)

    assert module.language is Language.PYTHON
    assert module.module_name == "service"

    public = _sym(module, "public_function")
    assert (public.kind, public.visibility) == (SymbolKind.FUNCTION, Visibility.PUBLIC)
    assert public.doc == "Convert x to a string."
    assert public.signature == "public_function(x: int) -> str"

    assert _sym(module, "_private_function").visibility is Visibility.PRIVATE

    cls = _sym(module, "TestClass")
    assert (cls.kind, cls.visibility) == (SymbolKind.CLASS, Visibility.PUBLIC)
    assert cls.doc == "A test class."

    assert _sym(module, "method").kind is SymbolKind.METHOD
    hidden = _sym(module, "_hidden")
    assert (hidden.kind, hidden.visibility) == (SymbolKind.METHOD, Visibility.PRIVATE)
    assert _sym(module, "decorated").kind is SymbolKind.FUNCTION


def test_python_constants():
    module = parse_file("service.py", PYTHON_SOURCE)

    assert _sym(module, "MAX_RETRIES").kind is SymbolKind.CONST
    assert _sym(module, "_CACHE_SIZE").visibility is Visibility.PRIVATE
    assert not any(s.name == "logger" for s in module.symbols)


def test_python_imports():
    module = parse_file("service.py", PYTHON_SOURCE)

    assert _imports(module) == [
        "os", "json", "xml.etree.ElementTree", "typing", ".config", ".utils", "collections",
    ]


# ── Go ────────────────────────────────────────────────────────────────────────

GO_SOURCE = """\
package main

import (
    "fmt"
    "github.com/example/pkg"
)

import "os"

const MaxSize = 10

const (
    minSize = 1
    Default = 5
)

// PublicFunction is exported
func PublicFunction(x int) string {
    return fmt.Sprintf("%d", x)
}

func privateFunction() {
}

type PublicStruct struct {
    Field string
}

func (p *PublicStruct) Describe() string {
    return p.Field
}

type PublicInterface interface {
    Method()
}

type id int
"""


def test_go_symbols():
    module = parse_file("main.go", GO_SOURCE)

    assert module.language is Language.GO

    public_fn = _sym(module, "PublicFunction")
    assert (public_fn.kind, public_fn.visibility) == (SymbolKind.FUNCTION, Visibility.PUBLIC)
    assert public_fn.doc == "PublicFunction is exported"
    assert public_fn.signature == "PublicFunction(x int) string"

    assert _sym(module, "privateFunction").visibility is Visibility.PRIVATE
    assert _sym(module, "PublicStruct").kind is SymbolKind.STRUCT
    assert _sym(module, "PublicInterface").kind is SymbolKind.INTERFACE
    assert _sym(module, "Describe").kind is SymbolKind.METHOD

    alias = _sym(module, "id")
    assert (alias.kind, alias.visibility) == (SymbolKind.TYPE_ALIAS, Visibility.PRIVATE)


def test_go_constants():
    module = parse_file("main.go", GO_SOURCE)

    assert _sym(module, "MaxSize").kind is SymbolKind.CONST
    assert _sym(module, "Default").is_public
    assert _sym(module, "minSize").visibility is Visibility.PRIVATE


def test_go_imports():
    module = parse_file("main.go", GO_SOURCE)

    assert _imports(module) == ["fmt", "github.com/example/pkg", "os"]


# ── JavaScript / TypeScript ───────────────────────────────────────────────────

JS_SOURCE = """\
import { something } from './module';
import external from 'external-package';
import './side-effect.css';
const fs = require('fs');

/**
 * Doubles a number.
 */
export function exported(x) {
    return x * 2;
}

function regularFunction(x) {
    return x;
}

export const arrowFunction = (y) => y * 2;
const LIMIT = 5;
let counter = 0;

class TestClass {
    constructor() {}
    run() {}
    #secret() {}
}

export { regularFunction };
export * from './reexported';
"""


def test_js_exports_are_public():
    module = parse_file("app.js", JS_SOURCE)

    assert module.language is Language.JAVASCRIPT

    exported = _sym(module, "exported")
    assert (exported.kind, exported.visibility) == (SymbolKind.FUNCTION, Visibility.PUBLIC)
    assert exported.doc == "Doubles a number."

    arrow = _sym(module, "arrowFunction")
    assert (arrow.kind, arrow.visibility) == (SymbolKind.FUNCTION, Visibility.PUBLIC)

    # exported later through an export clause
    assert _sym(module, "regularFunction").visibility is Visibility.PUBLIC


def test_js_unexported_are_private():
    module = parse_file("app.js", JS_SOURCE)

    limit = _sym(module, "LIMIT")
    assert (limit.kind, limit.visibility) == (SymbolKind.CONST, Visibility.PRIVATE)

    cls = _sym(module, "TestClass")
    assert (cls.kind, cls.visibility) == (SymbolKind.CLASS, Visibility.PRIVATE)
    assert _sym(module, "run").kind is SymbolKind.METHOD
    assert not any(s.name == "constructor" for s in module.symbols)
    counter = _sym(module, "counter")
    assert (counter.kind, counter.visibility) == (SymbolKind.CONST, Visibility.PRIVATE)


def test_js_let_declarations_are_constants():
    module = parse_file("a.js", "export let counter = 1;\nlet x = 2;\nvar legacy = 3;\n")

    counter = _sym(module, "counter")
    assert (counter.kind, counter.visibility) == (SymbolKind.CONST, Visibility.PUBLIC)
    assert _sym(module, "x").visibility is Visibility.PRIVATE
    assert not any(s.name == "legacy" for s in module.symbols)


def test_js_imports_and_require():
    module = parse_file("app.js", JS_SOURCE)

    assert _imports(module) == [
        "./module", "external-package", "./side-effect.css", "./reexported", "fs",
    ]


TS_SOURCE = """\
import type { Options } from "./options";

export interface Greeter {
    greet(name: string): string;
}

export type Name = string;

enum Color { Red, Green }

export class Service implements Greeter {
    greet(name: string): string {
        return name;
    }

    private reset(): void {}
}

export function greet(name: string): string {
    return name;
}
"""


@pytest.mark.parametrize("filename, language", [
    ("service.ts", Language.TYPESCRIPT),
    ("service.tsx", Language.TSX),
])
def test_typescript_symbols(filename, language):
    module = parse_file(filename, TS_SOURCE)

    assert module.language is language
    assert _sym(module, "Greeter").kind is SymbolKind.INTERFACE
    assert _sym(module, "Name").kind is SymbolKind.TYPE_ALIAS

    color = _sym(module, "Color")
    assert (color.kind, color.visibility) == (SymbolKind.ENUM, Visibility.PRIVATE)

    assert _sym(module, "Service").is_public
    methods = {s.name: s for s in module.symbols if s.kind is SymbolKind.METHOD}
    assert methods["greet"].is_public
    assert methods["reset"].visibility is Visibility.PRIVATE

    fn = [s for s in module.symbols if s.name == "greet" and s.kind is SymbolKind.FUNCTION][0]
    assert fn.signature == "greet(name: string): string"
    assert _imports(module) == ["./options"]


# ── Failures ──────────────────────────────────────────────────────────────────

def test_unsupported_extension_raises():
    with pytest.raises(ParseError) as exc:
        parse_file("notes.txt", "some text")
    assert exc.value.path == "notes.txt"
    assert "Unsupported" in exc.value.message


def test_invalid_utf8_raises():
    with pytest.raises(ParseError) as exc:
        parse_file("broken.py", b"def f():\n    return '\xff\xfe'\n")
    assert "UTF-8" in exc.value.message


def test_bytes_and_str_content_are_equivalent():
    from_str = parse_file("utils.rs", RUST_UTILS)
    from_bytes = parse_file("utils.rs", RUST_UTILS.encode("utf-8"))

    assert from_str == from_bytes


def test_unrecoverable_tree_raises(monkeypatch):
    error_root = SimpleNamespace(type="ERROR", has_error=True)
    monkeypatch.setattr("fillback.extract.parse_source",
                        lambda language, source: SimpleNamespace(root_node=error_root))

    with pytest.raises(ParseError) as exc:
        parse_file("garbage.py", ")))")
    assert "Syntax error" in exc.value.message


def test_parser_failure_raises(monkeypatch):
    def fail(language, source):
        raise ValueError("no grammar")

    monkeypatch.setattr("fillback.extract.parse_source", fail)

    with pytest.raises(ParseError, match="Parser failed"):
        parse_file("main.go", "package main\n")


@pytest.mark.parametrize("filename, garbage", [
    ("a.py", ")))}}}"),
    ("a.rs", "fn {{{"),
    ("a.go", "}}}"),
    ("a.js", ")))"),
])
def test_garbage_input_still_yields_a_module(filename, garbage):
    module = parse_file(filename, garbage)

    assert module.module_name == "a"


def test_syntax_errors_are_tolerated():
    module = parse_file("partial.py", "def ok():\n    pass\n\ndef broken(:\n")

    assert _sym(module, "ok").kind is SymbolKind.FUNCTION
