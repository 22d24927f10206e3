"""
Section headers and structural edits on raw env text.

A section starts at a "# [Name]" comment and runs until the next header or
the end of the document. Edits here work on lines, not on parsed variables,
so comments and spacing outside the edited section are left untouched.
"""

import re
from typing import List, Optional


SECTION_HEADER_RE = re.compile(r"^#\s*\[([^\]]*)\]\s*$")

# Longest run of blank lines kept after removing a section
MAX_BLANK_RUN = 2


def parse_section_header(line: str) -> Optional[str]:
    """
    Extract the section name from a header line.

    Args:
        line: A single line, with or without its line ending

    Returns:
        Section name, or None if the line isn't a section header
    """
    match = SECTION_HEADER_RE.match(line.strip())
    if match:
        return match.group(1)
    return None


def is_section_header(line: str) -> bool:
    return parse_section_header(line) is not None


def format_section_header(name: str) -> str:
    return f"# [{name}]"


def _find_header(lines: List[str], name: str) -> Optional[int]:
    header = format_section_header(name)
    for i, line in enumerate(lines):
        if line.strip() == header:
            return i
    return None


def has_section(content: str, name: str) -> bool:
    """Check whether content has a "# [name]" header line."""
    return _find_header(content.split('\n'), name) is not None


def _collapse_blank_lines(lines: List[str]) -> List[str]:
    collapsed = []
    blank_run = 0
    for line in lines:
        if line.strip():
            blank_run = 0
        else:
            blank_run += 1
            if blank_run > MAX_BLANK_RUN:
                continue
        collapsed.append(line)
    return collapsed


def remove_section(content: str, name: str) -> str:
    """
    Remove a section and its body from env content.

    Only the first "# [name]" header is removed, along with every line up to
    the next section header. Removing a section that doesn't exist returns
    the content unchanged.

    Args:
        content: Env document text
        name: Section name

    Returns:
        Updated content with blank-line runs collapsed and trailing
        whitespace stripped
    """
    lines = content.split('\n')
    start = _find_header(lines, name)
    if start is None:
        return content

    end = start + 1
    while end < len(lines) and not is_section_header(lines[end]):
        end += 1

    remaining = lines[:start] + lines[end:]
    return '\n'.join(_collapse_blank_lines(remaining)).rstrip()


def upsert_section(content: str, name: str, body: str) -> str:
    """
    Replace a section's body, or add the section at the end.

    An existing section is removed first, so the new body always lands at
    the end of the document.

    Args:
        content: Env document text
        name: Section name
        body: Lines to put under the header

    Returns:
        Updated content, newline-terminated
    """
    if has_section(content, name):
        content = remove_section(content, name)
    else:
        content = content.rstrip()

    parts = []
    if content:
        parts.append(content + "\n\n")
    parts.append(format_section_header(name) + "\n")
    body = body.strip("\n")
    if body:
        parts.append(body + "\n")
    return ''.join(parts)
