"""Stdio capture proxy for language servers."""

from .version import __version__  # noqa: F401
