"""Infrastructure layer: reusable transform operations and steps."""
