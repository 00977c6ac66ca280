"""Document grammar: a header line followed by delimited entry blocks.

    # Activity Log

    <entry-block-1>
    ---
    <entry-block-2>
    ---

Blocks are opaque text here; the codec gives them meaning.
"""

import re
from dataclasses import dataclass

from .constants import ENTRY_DELIMITER, LOG_HEADER, LOG_TITLE

HEADER_PATTERN = re.compile(rf"^{re.escape(LOG_TITLE)}[ \t]*\n*")


def _normalize(document: str) -> str:
    """Drop a leading byte order mark and turn CRLF into LF."""
    return document.removeprefix("\ufeff").replace("\r\n", "\n")


@dataclass(frozen=True)
class RawBlock:
    """One undecoded entry block and where it starts in the file."""

    text: str
    line_number: int  # 1-based, first non-blank line of the block


def split_header(document: str) -> tuple[str, str]:
    """Split a document into (header, body). A missing header yields the standard one."""
    document = _normalize(document)
    match = HEADER_PATTERN.match(document)
    if match is None:
        return LOG_HEADER, document
    return LOG_HEADER, document[match.end():]


def split_document(document: str) -> list[RawBlock]:
    """Split a document into entry blocks, skipping whitespace-only sections."""
    document = _normalize(document)
    match = HEADER_PATTERN.match(document)
    body = document[match.end():] if match else document
    line = 1 + (document[:match.end()].count("\n") if match else 0)

    blocks = []
    for section in body.split(ENTRY_DELIMITER):
        if section.strip():
            leading = len(section) - len(section.lstrip("\n"))
            blocks.append(RawBlock(text=section.strip("\n"), line_number=line + leading))
        # the delimiter closes the section's last line and adds the "---" line
        line += section.count("\n") + 2
    return blocks


def assemble_document(blocks: list[str]) -> str:
    """Join encoded blocks (newest first) under the header."""
    return LOG_HEADER + "\n".join(block + ENTRY_DELIMITER for block in blocks)


def prepend_block(document: str, block: str) -> str:
    """Insert one encoded block directly after the header."""
    header, body = split_header(document)
    if body.strip():
        return header + block + ENTRY_DELIMITER + "\n" + body
    return header + block + ENTRY_DELIMITER
