"""CLI package for SciNecromancer command orchestration.

This package contains the click interface, the command runner that owns
component lifetimes, and the command implementations.
"""

from __future__ import annotations

__all__ = ["CommandRunner", "main"]

from SciNecromancer.cli.runner import CommandRunner
from SciNecromancer.cli.ui import cli


def main() -> None:
    """Run SciNecromancer CLI.

    Entry point referenced by console script in pyproject.toml.
    """
    cli()
