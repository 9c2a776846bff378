"""Backup folder naming convention.

Folder names look like ``Weekly_2024_01_15_0930``. Every numeric field is
zero-padded to a fixed width, so sorting the date portion as a plain string
gives chronological order. Keep it that way if the format ever changes.
"""

import re
from datetime import datetime
from typing import Iterable, Optional, Tuple

DEFAULT_CLASSES = ("Weekly", "Monthly")
SEPARATOR = "_"
STAMP_FORMAT = "%Y_%m_%d_%H%M"
STAMP_PATTERN = r"\d{4}_\d{2}_\d{2}_\d{4}"

# Subfolder of an export that holds the VM configuration descriptors
DESCRIPTOR_FOLDER = "Virtual Machines"


def format_stamp(moment: datetime) -> str:
    """Return the ``YYYY_MM_DD_HHMM`` stamp for a moment (seconds dropped)."""
    return moment.strftime(STAMP_FORMAT)


def folder_name(backup_class: str, moment: datetime) -> str:
    """Build the folder name for a rotation of ``backup_class`` at ``moment``."""
    return f"{backup_class}{SEPARATOR}{format_stamp(moment)}"


def class_prefix(backup_class: str) -> str:
    return f"{backup_class}{SEPARATOR}"


def compile_folder_pattern(classes: Iterable[str] = DEFAULT_CLASSES) -> "re.Pattern":
    """Compile the ``(Class|...)_(YYYY_MM_DD_HHMM)`` pattern for ``classes``."""
    alternation = "|".join(re.escape(c) for c in classes)
    return re.compile(rf"({alternation}){SEPARATOR}({STAMP_PATTERN})")


FOLDER_PATTERN = compile_folder_pattern()
_STAMP_RE = re.compile(STAMP_PATTERN)


def parse_folder_name(name: str, pattern: Optional["re.Pattern"] = None) -> Optional[Tuple[str, str]]:
    """Extract ``(class, stamp)`` from a folder name.

    The pattern may appear anywhere in the name, so ``Weekly_2024_01_08_0000_manual``
    still yields ``("Weekly", "2024_01_08_0000")``.

    Args:
        name: Directory name to parse
        pattern: Compiled folder pattern (defaults to Weekly/Monthly)

    Returns:
        Tuple of class and stamp, or None if the name is not a backup folder
    """
    match = (pattern or FOLDER_PATTERN).search(name)
    if not match:
        return None
    return match.group(1), match.group(2)


def parse_stamp(stamp: str) -> datetime:
    """Turn a ``YYYY_MM_DD_HHMM`` stamp back into a datetime."""
    return datetime.strptime(stamp, STAMP_FORMAT)


def stamp_in(name: str) -> Optional[datetime]:
    """Return the datetime of the first ``YYYY_MM_DD_HHMM`` stamp in a name, if any."""
    match = _STAMP_RE.search(name)
    if not match:
        return None
    try:
        return parse_stamp(match.group(0))
    except ValueError:
        return None
