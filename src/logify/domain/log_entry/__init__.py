"""
Log entry domain: the canonical record, its validation rules and the batch
service that runs a complete read → transform → write pass.
"""

from .constants import ALL_COLUMNS, REQUIRED_COLUMNS
from .models import LogEntry
from .validator import check_duration, validate_fields

__all__ = [
    "LogEntry",
    "validate_fields",
    "check_duration",
    "REQUIRED_COLUMNS",
    "ALL_COLUMNS",
]
