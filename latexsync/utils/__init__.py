"""
Shared utilities for latexsync.

Common functionality used across contexts:
- Settings loading and validation
- Logger setup and build event logging
- Exception taxonomy
- Timestamps
"""

from latexsync.utils.config import Settings, load_settings
from latexsync.utils.timestamp import now, now_exact

__all__ = ["Settings", "load_settings", "now", "now_exact"]
