"""Dependency wiring."""

from packsync.di.container import Container, build_fetchers

__all__ = ["Container", "build_fetchers"]
