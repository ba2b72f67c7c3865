"""Lightweight language utilities for routing.

Module scope:
- Response-category parsing for the dialogue graph (`intent_router`).
- Keyword detection for download-status, download, and delete requests.

Determinism profile:
- Pure rule logic over text and already-parsed model output.
"""
