"""Collaborative packing-list client: REST access, optimistic mutations and cache sync."""

__version__ = "0.1.0"
