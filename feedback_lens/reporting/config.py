"""Configuration constants for the reporting pipeline."""
from __future__ import annotations

import os

# Maximum number of emojis displayed in the sentiment bar
MAX_EMOJI_BAR: int = int(os.getenv("REPORT_MAX_EMOJI_BAR", "20"))

# Number of topics shown in topic listings (most mentioned first)
TOP_TOPICS: int = int(os.getenv("REPORT_TOP_TOPICS", "10"))

# Maximum comments to include verbatim in a rendered report (safety cap)
MAX_COMMENTS: int = int(os.getenv("REPORT_MAX_COMMENTS", "50"))

# Rendered reports longer than this are uploaded to Slack as a file
SLACK_MESSAGE_LIMIT: int = int(os.getenv("REPORT_SLACK_MESSAGE_LIMIT", "2800"))
