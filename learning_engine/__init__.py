"""Assessment & progress engine for course play sessions."""

__version__ = "0.1.0"
