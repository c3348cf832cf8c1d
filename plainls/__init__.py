"""plainls: a minimal language server for plain-text documents."""

__version__ = "0.1.0"
