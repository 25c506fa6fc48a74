"""Stored-name generation and validation.

A stored name is the upload time in whole unix seconds followed by the
original file's extension, e.g. ``1700000000.txt``. Nothing else from the
client-supplied filename reaches the stored name, so stored names always
live in a flat namespace.

Two uploads in the same second with the same extension produce the same
base name. ``candidate_names`` yields ``<ts><ext>``, ``<ts>-1<ext>``,
``<ts>-2<ext>`` ... and the metadata store's UNIQUE constraint decides
which upload owns which name.

Examples:
    >>> file_extension("report.final.pdf")
    '.pdf'
    >>> generate_stored_name("a.txt", 1700000000)
    '1700000000.txt'
    >>> list(candidate_names("a.txt", 1700000000, 3))
    ['1700000000.txt', '1700000000-1.txt', '1700000000-2.txt']
"""
import re
from typing import Iterator

from uploads.errors import BadRequestError

_SAFE_EXTENSION = re.compile(r'^\.[a-zA-Z0-9._-]*$')


def file_extension(original_name: str) -> str:
    """Return the final dot suffix of the last path element, or ''.

    Extensions with characters outside ``[a-zA-Z0-9._-]`` are dropped.
    """
    base = re.split(r'[/\\]', original_name or "")[-1]
    dot = base.rfind(".")
    if dot == -1:
        return ""
    ext = base[dot:]
    if not _SAFE_EXTENSION.match(ext):
        return ""
    return ext


def generate_stored_name(original_name: str, timestamp: float) -> str:
    """Build the base stored name at one-second resolution."""
    return f"{int(timestamp)}{file_extension(original_name)}"


def candidate_names(original_name: str, timestamp: float, max_attempts: int) -> Iterator[str]:
    """Yield up to ``max_attempts`` stored names, base name first."""
    base = generate_stored_name(original_name, timestamp)
    if max_attempts < 1:
        return
    yield base

    ext = file_extension(original_name)
    seconds = int(timestamp)
    for attempt in range(1, max_attempts):
        yield f"{seconds}-{attempt}{ext}"


def is_safe_name(name: str) -> bool:
    """Check that a stored name cannot escape the flat storage directory."""
    if not name:
        return False
    return not any(bad in name for bad in ("..", "/", "\\", "\x00"))


def validate_stored_name(name: str):
    """Validate a stored name and raise BadRequestError if it is unsafe."""
    if not name:
        raise BadRequestError("Filename not specified")
    if not is_safe_name(name):
        raise BadRequestError("Invalid filename")
