"""Fixed values of the activity log document format and engine defaults.

Changing anything in the wire section breaks compatibility with existing
log files.
"""

# ─────────────────────────────────────────────────────────────────────────────
# Wire format
# ─────────────────────────────────────────────────────────────────────────────

LOG_TITLE = "# Activity Log"
LOG_HEADER = f"{LOG_TITLE}\n\n"
ENTRY_DELIMITER = "\n---\n"

METADATA_START = "<!-- "
METADATA_END = " -->"

# Description and other free-text tokens use this in place of spaces
SPACE_PLACEHOLDER = "_"

# ─────────────────────────────────────────────────────────────────────────────
# Engine defaults
# ─────────────────────────────────────────────────────────────────────────────

CORRUPTED_PREVIEW_LENGTH = 200
DEFAULT_PAGE_SIZE = 50
DEFAULT_DATE_RANGE_LIMIT = 100
DEFAULT_CAMPAIGN_ID = "campaign_default"
DEFAULT_LOG_FILENAME = "Activity Log.md"
DEFAULT_GM_NAME = "Game Master"

# Time units (seconds)
SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400
SECONDS_PER_WEEK = 604800
SECONDS_PER_MONTH = 2592000  # 30 days
SECONDS_PER_YEAR = 31536000  # 365 days
