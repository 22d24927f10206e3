"""
Lossless lexer for sectioned .env documents.

Every line becomes a token that keeps its original text, so
    write(tokenize(content)) == content
holds for any input. Variables are read from the token stream with a
running "current section" taken from the nearest "# [Name]" header above.

Values may be encrypted tokens (see crypto). parse_variables can decrypt
them on the way out, and encrypt_content rewrites values in place without
touching anything else on the line.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .crypto import (
    DecryptionError,
    decrypt_value,
    encrypt_value,
    is_available,
    is_encrypted,
)
from .sections import parse_section_header


log = logging.getLogger(__name__)

_VALUE_RE = re.compile(r"^(\s*)(.*?)(\s*)$", re.DOTALL)


class TokenType(Enum):
    """Token types for sectioned .env documents."""
    BLANK_LINE = "blank_line"
    COMMENT = "comment"
    SECTION_HEADER = "section_header"
    KEY_VALUE = "key_value"
    INVALID = "invalid"  # Not blank, not a comment, no '='


@dataclass
class Token:
    """A single line of the document."""
    type: TokenType
    raw: str  # Original text, including the line ending
    key: Optional[str] = None
    value: Optional[str] = None
    section: Optional[str] = None  # Name for SECTION_HEADER tokens

    def __repr__(self):
        if self.type == TokenType.KEY_VALUE:
            return f"Token({self.type.value}, {self.key}={self.value})"
        if self.type == TokenType.SECTION_HEADER:
            return f"Token({self.type.value}, [{self.section}])"
        return f"Token({self.type.value}, {repr(self.raw[:20])}...)"


@dataclass
class Variable:
    """One key/value entry and the section it was found in."""
    key: str
    value: str
    section: Optional[str] = None


def split_lines(content: str) -> List[str]:
    """Split on '\\n' only, keeping line endings."""
    lines = content.split('\n')
    result = [line + '\n' for line in lines[:-1]]
    if lines[-1]:
        result.append(lines[-1])
    return result


class Lexer:
    """
    Lossless lexer for sectioned .env files.

    Tokenizes a document into a stream of tokens that can be reconstructed
    back into the original text.
    """

    def __init__(self, content: str):
        self.content = content
        self.lines = split_lines(content)

    def tokenize(self) -> List[Token]:
        """
        Parse content into tokens.

        Returns:
            List of Token objects, one per line
        """
        return [self._parse_line(line) for line in self.lines]

    def _parse_line(self, line: str) -> Token:
        """Parse a single line into a token."""
        stripped = line.strip()

        if not stripped:
            return Token(type=TokenType.BLANK_LINE, raw=line)

        if stripped.startswith('#'):
            section = parse_section_header(stripped)
            if section is not None:
                return Token(type=TokenType.SECTION_HEADER, raw=line, section=section)
            return Token(type=TokenType.COMMENT, raw=line)

        # The first '=' splits key from value; values may contain '='
        if '=' in stripped:
            key, value = stripped.split('=', 1)
            key = key.strip()
            if key:
                return Token(
                    type=TokenType.KEY_VALUE,
                    raw=line,
                    key=key,
                    value=value.strip(),
                )

        return Token(type=TokenType.INVALID, raw=line)


def tokenize(content: str) -> List[Token]:
    """
    Parse env content into tokens.

    Args:
        content: Document text

    Returns:
        List of Token objects
    """
    return Lexer(content).tokenize()


def write(tokens: List[Token]) -> str:
    """Reconstruct the document from tokens."""
    return ''.join(token.raw for token in tokens)


def diagnostics(tokens: List[Token]) -> List[Tuple[int, str]]:
    """
    List lines that were skipped while parsing.

    Args:
        tokens: List of Token objects

    Returns:
        (line_number, text) pairs for every INVALID token, 1-based
    """
    return [
        (i, token.raw.rstrip('\r\n'))
        for i, token in enumerate(tokens, start=1)
        if token.type == TokenType.INVALID
    ]


def parse_variables(
    content: str,
    decrypt: bool = False,
    encryption_key: Optional[str] = None,
) -> List[Variable]:
    """
    Read variables from env content, tagged with their section.

    When decrypt is set and the key is usable, encrypted values are
    decrypted. A value that fails to decrypt is logged and kept as-is.

    Args:
        content: Document text
        decrypt: Whether to decrypt "ENC:" values
        encryption_key: Passphrase used for decryption

    Returns:
        Variables in document order
    """
    can_decrypt = decrypt and is_available(encryption_key)
    variables = []
    current_section = None

    for token in tokenize(content):
        if token.type == TokenType.SECTION_HEADER:
            current_section = token.section
            continue

        if token.type != TokenType.KEY_VALUE:
            continue

        value = token.value
        if can_decrypt and is_encrypted(value):
            try:
                value = decrypt_value(value, encryption_key)
            except DecryptionError as e:
                log.warning("Could not decrypt value of %s: %s", token.key, e)

        variables.append(Variable(key=token.key, value=value, section=current_section))

    return variables


def _rewrite_value(token: Token, new_value: str) -> str:
    """Swap the value inside a KEY_VALUE line, keeping its surroundings."""
    eq_index = token.raw.index('=')
    prefix = token.raw[:eq_index + 1]
    leading, _, trailing = _VALUE_RE.match(token.raw[eq_index + 1:]).groups()
    return f"{prefix}{leading}{new_value}{trailing}"


def encrypt_content(content: str, encryption_key: Optional[str]) -> str:
    """
    Encrypt every plaintext value in a document, in place.

    Keys, comments, section headers, blank lines, and spacing are kept as
    they are. Values that are already encrypted are left alone. Without a
    usable key the content is returned unchanged.

    Args:
        content: Document text
        encryption_key: Passphrase

    Returns:
        Document text with encrypted values
    """
    if not is_available(encryption_key):
        return content

    tokens = tokenize(content)
    for token in tokens:
        if token.type != TokenType.KEY_VALUE:
            continue
        if not token.value or is_encrypted(token.value):
            continue
        encrypted = encrypt_value(token.value, encryption_key)
        token.raw = _rewrite_value(token, encrypted)
        token.value = encrypted

    return write(tokens)


def decrypt_content(content: str, encryption_key: Optional[str]) -> str:
    """
    Decrypt every encrypted value in a document, in place.

    Args:
        content: Document text
        encryption_key: Passphrase

    Returns:
        Document text with plaintext values

    Raises:
        DecryptionError: If any value fails to decrypt
    """
    if not is_available(encryption_key):
        return content

    tokens = tokenize(content)
    for token in tokens:
        if token.type == TokenType.KEY_VALUE and is_encrypted(token.value):
            plaintext = decrypt_value(token.value, encryption_key)
            token.raw = _rewrite_value(token, plaintext)
            token.value = plaintext

    return write(tokens)


def get_sections(variables: Iterable[Variable]) -> List[str]:
    """Distinct section names in order of first appearance."""
    seen = {}
    for var in variables:
        if var.section is not None:
            seen.setdefault(var.section, None)
    return list(seen)


def get_keys(variables: Iterable[Variable]) -> List[str]:
    """Distinct keys in order of first appearance."""
    seen = {}
    for var in variables:
        seen.setdefault(var.key, None)
    return list(seen)


def filter_by_section(variables: Iterable[Variable], section: Optional[str]) -> List[Variable]:
    return [var for var in variables if var.section == section]


def filter_by_keys(variables: Iterable[Variable], keys: Iterable[str]) -> List[Variable]:
    wanted = set(keys)
    return [var for var in variables if var.key in wanted]


def to_mapping(variables: Iterable[Variable]) -> Dict[str, str]:
    """Flatten variables into a dict; the last occurrence of a key wins."""
    return {var.key: var.value for var in variables}


def group_by_section(variables: Iterable[Variable]) -> List[Tuple[Optional[str], List[Variable]]]:
    """
    Group variables into runs that share a section.

    A section that appears twice, separated by another one, gives two runs.

    Args:
        variables: Variables in document order

    Returns:
        List of (section, variables) pairs
    """
    groups: List[Tuple[Optional[str], List[Variable]]] = []
    for var in variables:
        if groups and groups[-1][0] == var.section:
            groups[-1][1].append(var)
        else:
            groups.append((var.section, [var]))
    return groups
