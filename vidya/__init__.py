"""Vidya chat core: conversation layer between a study-assistant UI and a model endpoint.

This package features:
- Turn buffering with summary-based history compaction
- Streamed replies assembled from ordered text fragments
- A closed error taxonomy with retry decisions for every model call
- Single-slot retry of the last failed request, resent unchanged
"""

from vidya.config import VERSION

__all__ = ["VERSION"]
