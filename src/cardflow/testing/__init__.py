# src/cardflow/testing/__init__.py
"""Test doubles for building and exercising workers without a backend."""

from cardflow.testing.bridge import BridgeUnavailableError, InMemoryBridge

__all__ = ["BridgeUnavailableError", "InMemoryBridge"]
