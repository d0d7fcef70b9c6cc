"""Command-line interface for Logify."""
