"""AlumNet messaging core: conversations, messages, presence and delivery."""

__version__ = "1.0.0"
