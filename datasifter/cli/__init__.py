"""CLI module for datasifter."""

from datasifter.cli import config, sift
from datasifter.cli.main import app, main_cli

__all__ = [
    "app",
    "main_cli",
    "config",
    "sift",
]
