"""Helpers for verifying sandbox toolchain resources: metrics, spaces, template refs and tier expectations."""

__version__ = "0.1.0"