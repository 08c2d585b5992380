from pathlib import Path

import pytest

RUST_MAIN = """\
mod config;
mod utils;

use config::Config;

fn main() {
    let cfg = Config::default();
    println!("{}", utils::helper(&cfg.name));
}
"""

RUST_CONFIG = """\
/// Application settings.
#[derive(Debug, Default)]
pub struct Config {
    pub name: String,
}

pub enum ConfigError {
    Missing,
}

impl Config {
    pub fn load() -> Result<Config, ConfigError> {
        Ok(Config::default())
    }
}
"""

RUST_UTILS = """\
use std::collections::HashMap;

pub fn helper(s: &str) -> String {
    format_string(s)
}

pub fn format_string(s: &str) -> String {
    s.to_uppercase()
}

fn internal_fn() -> HashMap<String, String> {
    HashMap::new()
}
"""


def write_tree(root: Path, files: dict[str, str | bytes]) -> Path:
    """Create files (relative path → content) under root and return root."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def rust_project(tmp_path: Path) -> Path:
    """The three-module Rust crate: main → config, utils."""
    return write_tree(tmp_path / "src", {
        "main.rs": RUST_MAIN,
        "config.rs": RUST_CONFIG,
        "utils.rs": RUST_UTILS,
    })
