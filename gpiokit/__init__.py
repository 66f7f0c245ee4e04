"""Access to Linux GPIO chips and lines through the character device."""

__version__ = "1.4.1"