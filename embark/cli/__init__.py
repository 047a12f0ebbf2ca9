"""CLI package exports for top-level command entry points."""

from __future__ import annotations

from .main import EmbarkModalCLI, main

__all__ = ['EmbarkModalCLI', 'main']
