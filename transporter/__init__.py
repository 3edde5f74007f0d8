"""Adaptors, messages and a command line for moving documents between data stores."""

__version__ = "0.1.0"