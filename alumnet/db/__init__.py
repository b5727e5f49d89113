"""Database engine, sessions and table bootstrap."""
