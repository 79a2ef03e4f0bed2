"""Discord bot that resolves wiki titles, links and interwiki references."""
