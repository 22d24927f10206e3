"""
Local .env files: loading and merging downloaded variables.

Two write modes:
- replace: the file is rebuilt from the given variables only
- append: the given variables are added below the existing content,
  after an ADDED_MARKER comment
"""

from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from .lexer import Variable, parse_variables, to_mapping
from .sections import format_section_header


ADDED_MARKER = "# --- Added by gistenv ---"


class WriteMode(str, Enum):
    """How downloaded variables are written to a local file."""
    APPEND = "append"
    REPLACE = "replace"


def load_env_file(path: Union[str, Path]) -> Dict[str, str]:
    """
    Load a local env file into a flat mapping.

    Args:
        path: Path to the env file

    Returns:
        Dict of key -> value; empty if the file doesn't exist. When a key
        appears more than once, the last occurrence wins.
    """
    path = Path(path)
    if not path.exists():
        return {}
    return to_mapping(parse_variables(path.read_text()))


def render_variables(variables: Iterable[Variable], existing_keys: Iterable[str] = ()) -> str:
    """
    Serialize variables as env lines with section headers.

    A header is written whenever the section changes from the previously
    written variable. Variables without a section whose key is in
    existing_keys are skipped.

    Args:
        variables: Variables in the order to write them
        existing_keys: Keys already defined in the target file

    Returns:
        Env text, one "key=value" line per written variable
    """
    existing = set(existing_keys)
    lines: List[str] = []
    previous: Optional[Variable] = None

    for var in variables:
        if var.section is None and var.key in existing:
            continue

        section_changed = previous is None or previous.section != var.section
        if section_changed and var.section is not None:
            if lines:
                lines.append("")
            lines.append(format_section_header(var.section))
        elif section_changed and previous is not None:
            # Back to variables without a section
            lines.append("")

        lines.append(f"{var.key}={var.value}")
        previous = var

    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def merge_env_content(
    variables: List[Variable],
    existing_content: str = "",
    mode: Union[WriteMode, str] = WriteMode.APPEND,
) -> str:
    """
    Build the new text of a local env file.

    Args:
        variables: Variables to write
        existing_content: Current file content ("" if the file is missing)
        mode: WriteMode.APPEND or WriteMode.REPLACE

    Returns:
        Full file content to write
    """
    mode = WriteMode(mode)

    if mode == WriteMode.REPLACE or not existing_content:
        return render_variables(variables)

    existing_keys = to_mapping(parse_variables(existing_content)).keys()

    content = existing_content
    if not content.endswith("\n"):
        content += "\n"
    content += f"\n{ADDED_MARKER}\n"
    return content + render_variables(variables, existing_keys)


def write_env_file(
    variables: List[Variable],
    path: Union[str, Path] = ".env",
    mode: Union[WriteMode, str] = WriteMode.APPEND,
) -> str:
    """
    Write variables to a local env file.

    Args:
        variables: Variables to write
        path: Target file
        mode: WriteMode.APPEND or WriteMode.REPLACE

    Returns:
        The content that was written
    """
    path = Path(path)
    mode = WriteMode(mode)

    existing_content = ""
    if mode == WriteMode.APPEND and path.exists():
        existing_content = path.read_text()

    content = merge_env_content(variables, existing_content, mode)
    path.write_text(content)
    return content
