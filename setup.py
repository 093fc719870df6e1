#!/usr/bin/env python3
"""
setup.py compatibility wrapper for tools that still expect one.

cassmigrate is built from pyproject.toml with hatchling as the build backend.

For normal Python installation, use:
    pip install .
"""

from setuptools import setup

# Configuration lives in pyproject.toml
setup()
