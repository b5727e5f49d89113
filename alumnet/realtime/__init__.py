"""Real-time presence and delivery channel."""
