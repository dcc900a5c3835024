"""Passive per-branch time tracking for git repositories."""

__version__ = "0.1.0"

__all__ = ["__version__"]
