"""
npmplus HTTP Service

The single transport adapter over the package orchestrator.
"""

from .app import create_app, main

__all__ = [
    "create_app",
    "main",
]
