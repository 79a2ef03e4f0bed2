"""Discord adapter: reply builders, send helpers and bot credentials."""
