"""Configuration module for watchsync.

This module provides a two-tier configuration system:
- constants: Pure constants that never change (Discord limits, colors, defaults)
- settings: Runtime settings loaded from environment variables
"""

# Re-export all constants
from watchsync.config.constants import (
    EMBED_DESCRIPTION_LIMIT,
    EMBED_TITLE_LIMIT,
    EMPTY_EMBED_COLOR,
    FAIR_EMBED_COLOR,
    GOOD_EMBED_COLOR,
    POOR_EMBED_COLOR,
    PRESENCE_EMBED_TITLE,
)

# Re-export settings class
from watchsync.config.settings import WatchSyncSettings

__all__ = [
    # Constants
    "EMBED_DESCRIPTION_LIMIT",
    "EMBED_TITLE_LIMIT",
    "EMPTY_EMBED_COLOR",
    "FAIR_EMBED_COLOR",
    "GOOD_EMBED_COLOR",
    "POOR_EMBED_COLOR",
    "PRESENCE_EMBED_TITLE",
    # Settings class
    "WatchSyncSettings",
]
