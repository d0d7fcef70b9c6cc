"""Domain layer: the log entry model and shared pipeline contracts."""
