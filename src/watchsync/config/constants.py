"""Constants for watchsync.

These are true constants that never change - Discord API limits, presentation
colours and the defaults used when an environment variable is unset.
"""

from typing import Final

# Discord API limits
# See https://discord.com/developers/docs/resources/channel#embed-limits
EMBED_DESCRIPTION_LIMIT: Final = 4096
EMBED_TITLE_LIMIT: Final = 256

# Embed colors, one per connection quality
GOOD_EMBED_COLOR: Final = 0x4CAF50
FAIR_EMBED_COLOR: Final = 0xFFC107
POOR_EMBED_COLOR: Final = 0xF44336
EMPTY_EMBED_COLOR: Final = 0x9E9E9E

PRESENCE_EMBED_TITLE: Final = "Watching Together"

# Sync defaults (seconds unless noted)
DEFAULT_TOLERANCE_GOOD: Final = 0.5
DEFAULT_TOLERANCE_FAIR: Final = 1.5
DEFAULT_TOLERANCE_POOR: Final = 3.0
DEFAULT_QUALITY_FAIR_THRESHOLD: Final = 0.5
DEFAULT_QUALITY_POOR_THRESHOLD: Final = 2.0
DEFAULT_SYNC_DELTA_WEIGHT: Final = 0.3
DEFAULT_MIN_CORRECTION_INTERVAL: Final = 2.0
DEFAULT_SYNC_INTERVAL_MIN: Final = 2.0
DEFAULT_SYNC_INTERVAL_MAX: Final = 8.0
DEFAULT_QUALITY_CONFIRMATIONS: Final = 2

# Presence lifecycle defaults (seconds)
DEFAULT_INACTIVE_AFTER: Final = 20.0
DEFAULT_AWAY_AFTER: Final = 60.0
DEFAULT_LIVENESS_WINDOW: Final = 120.0
DEFAULT_HOST_GRACE_PERIOD: Final = 5.0
DEFAULT_TRANSFER_TIMEOUT: Final = 5.0
DEFAULT_SWEEP_INTERVAL: Final = 1.0

