"""
CLI module for tokenmeter.

Provides the command-line interface using Click.
"""

from tokenmeter.cli.main import cli, main

__all__ = ["main", "cli"]
