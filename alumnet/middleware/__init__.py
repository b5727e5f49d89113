"""Authentication and CORS."""
