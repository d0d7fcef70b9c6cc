"""Column names and layout of the delimited log format."""

from typing import Tuple

TIMESTAMP_FIELD = "timestamp"
USER_ID_FIELD = "user_id"
ACTION_FIELD = "action"
DURATION_FIELD = "duration"
METADATA_FIELD = "metadata"

# Positional order used when the file has no header row
REQUIRED_COLUMNS: Tuple[str, ...] = (
    TIMESTAMP_FIELD,
    USER_ID_FIELD,
    ACTION_FIELD,
    DURATION_FIELD,
)
ALL_COLUMNS: Tuple[str, ...] = REQUIRED_COLUMNS + (METADATA_FIELD,)

DEFAULT_DELIMITER = ","
QUOTE_CHAR = '"'
