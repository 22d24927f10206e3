"""
gistenv - Sectioned environment variables in a GitHub Gist

Copies named sections of a shared .env file kept in a Gist into local .env
files, with optional per-value encryption.
"""

__version__ = "0.1.0"

from .core import crypto, lexer, sections, envfile

__all__ = [
    "crypto",
    "lexer",
    "sections",
    "envfile",
]
