"""
test_package.py — Package-wide conventions.

Run with:
    pytest tests/test_package.py -v
"""

from __future__ import annotations

import importlib
import pkgutil

import pytest

import notihub

MODULES = sorted(
    info.name
    for info in pkgutil.walk_packages(notihub.__path__, prefix="notihub.")
    if info.name not in ("notihub.main", "notihub.__main__")
)


@pytest.mark.parametrize("name", MODULES)
def test_module_has_docstring(name):
    module = importlib.import_module(name)
    assert module.__doc__ and module.__doc__.strip(), f"{name} has no module docstring"
