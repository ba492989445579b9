"""AudioLog: voice journaling shared within interest circles."""

__version__ = "0.1.0"
