"""Plan engine."""
