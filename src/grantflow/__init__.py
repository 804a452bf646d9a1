"""grantflow - delegated OAuth authorization without handling provider credentials."""
