"""Contractor directory, scan sessions and cloud sync toolkit.

Exposes the high-level ``build_context`` and ``run_contractor_sync`` APIs for
programmatic use.
"""

from .context import AppContext, build_context  # Wiring of every component
from .runner import run_contractor_sync  # One-shot sync with JSON report

__all__ = ["AppContext", "build_context", "run_contractor_sync"]  # Re-exported symbols
