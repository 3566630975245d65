"""Shared fixtures for the choose tests."""

from __future__ import annotations

import io

import pytest

from choose import Config, OutputEmitter, parse_args, process_line


def make_config(argv):
    """Builds a Config the same way the command line does."""
    return Config.from_args(parse_args(argv))


def choose_line(argv, line):
    """Runs one line through choose and returns the printed text, newline stripped."""
    config = make_config(argv)
    out = io.StringIO()
    emitter = OutputEmitter(out, config.output_separator)
    process_line(emitter, config, line)
    text = out.getvalue()
    assert text.endswith("\n")
    return text[:-1]


@pytest.fixture
def run_choose():
    return choose_line


@pytest.fixture
def words():
    return ["rust", "lang", "is", "pretty", "darn", "cool"]
