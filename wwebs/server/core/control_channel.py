"""
Standard-error control channel.

Programs steer the response by writing commands to stderr, one per line:

    status <code>           set the response status
    header <name> <value>   set a header (no value deletes it)
    query <name> <value>    set a query parameter (request transformers only)
    log <message>           forward a message to the server log

Every other line is diagnostic output and is not interpreted.
"""

import logging
import re
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger("wwebs.control_channel")

INVALID_STATUS = 500

# Header names are HTTP tokens; values are Latin-1 text without control characters.
HEADER_NAME_PATTERN = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
HEADER_VALUE_PATTERN = re.compile(r"[\t\x20-\x7e\x80-\xff]*")


def is_valid_header(name: str, value: str) -> bool:
    """True when HTTP can carry the header unchanged."""
    return bool(HEADER_NAME_PATTERN.fullmatch(name) and HEADER_VALUE_PATTERN.fullmatch(value))


class ControlOutput(BaseModel):
    status: Optional[int] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    query: Dict[str, str] = Field(default_factory=dict)
    logs: List[str] = Field(default_factory=list)
    diagnostics: List[str] = Field(default_factory=list)


def parse_status(raw: str) -> int:
    """Parse a status argument; anything unusable becomes 500."""
    try:
        code = int(raw.strip())
    except ValueError:
        logger.warning(f"Invalid status command argument: {raw!r}")
        return INVALID_STATUS
    if not 100 <= code <= 999:
        logger.warning(f"Status command out of range: {code}")
        return INVALID_STATUS
    return code


def parse_control_output(stderr: bytes) -> ControlOutput:
    """
    Split a program's stderr into control commands and diagnostic lines.

    Args:
        stderr: raw standard error bytes

    Returns:
        ControlOutput with the last status, accumulated headers and logs
    """
    output = ControlOutput()
    text = stderr.decode("utf-8", errors="replace")

    for line in text.splitlines():
        if line.startswith("status "):
            output.status = parse_status(line[len("status ") :])
        elif line.startswith("header "):
            name, _, value = line[len("header ") :].partition(" ")
            if is_valid_header(name, value):
                output.headers[name] = value
            else:
                logger.warning(f"Dropping header command HTTP cannot carry: {line!r}")
        elif line.startswith("query "):
            name, _, value = line[len("query ") :].partition(" ")
            if name:
                output.query[name] = value
        elif line.startswith("log "):
            output.logs.append(line[len("log ") :])
        elif line:
            output.diagnostics.append(line)

    return output


def apply_header_commands(target: Dict[str, str], commands: Dict[str, str]) -> Dict[str, str]:
    """
    Apply header commands to a header mapping, in place.

    Names are matched case-insensitively; an empty value deletes the header.
    """
    for name, value in commands.items():
        for existing in [k for k in target if k.lower() == name.lower()]:
            del target[existing]
        if value:
            target[name] = value
    return target


def apply_query_commands(target: Dict[str, str], commands: Dict[str, str]) -> Dict[str, str]:
    """Apply query commands to a query mapping, in place; an empty value deletes."""
    for name, value in commands.items():
        if value:
            target[name] = value
        else:
            target.pop(name, None)
    return target
