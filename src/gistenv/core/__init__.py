"""
gistenv core modules.

Includes:
- crypto: Per-value AES-GCM encryption
- sections: Section headers and section removal on raw text
- lexer: Token-based parsing of sectioned .env documents
- envfile: Loading and merging local .env files
- config: Settings from the environment and .gistenv
- gist: GitHub Gist client
"""

from . import crypto
from . import sections
from . import lexer
from . import envfile
from . import config
from . import gist

__all__ = [
    "crypto",
    "sections",
    "lexer",
    "envfile",
    "config",
    "gist",
]
