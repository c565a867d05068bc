"""File status model and porcelain status parsing"""
from enum import Enum
from dataclasses import dataclass
from typing import List, Optional


class StatusCode(Enum):
    """Single status letter reported by git for the index or the working tree."""
    UNMODIFIED = " "
    MODIFIED = "M"
    TYPE_CHANGED = "T"
    ADDED = "A"
    DELETED = "D"
    RENAMED = "R"
    COPIED = "C"
    UPDATED = "U"
    UNTRACKED = "?"
    IGNORED = "!"

    @classmethod
    def parse(cls, letter: str) -> "StatusCode":
        """Map a porcelain status letter to a StatusCode, treating '_' as unmodified."""
        if letter == "_":
            return cls.UNMODIFIED
        return cls(letter)

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def letter(self) -> str:
        """Printable form, unmodified is shown as '_'."""
        return "_" if self is StatusCode.UNMODIFIED else self.value


_DESCRIPTIONS = {
    StatusCode.UNMODIFIED: "Not Modified",
    StatusCode.MODIFIED: "Modified",
    StatusCode.TYPE_CHANGED: "Type Changed",
    StatusCode.ADDED: "Added",
    StatusCode.DELETED: "Deleted",
    StatusCode.RENAMED: "Renamed",
    StatusCode.COPIED: "Copied",
    StatusCode.UPDATED: "Updated",
    StatusCode.UNTRACKED: "Untracked",
    StatusCode.IGNORED: "Ignored",
}

# Index/working tree pairs that git reports for unmerged paths
_UNMERGED_PAIRS = {
    (StatusCode.DELETED, StatusCode.DELETED),
    (StatusCode.ADDED, StatusCode.UPDATED),
    (StatusCode.UPDATED, StatusCode.DELETED),
    (StatusCode.UPDATED, StatusCode.ADDED),
    (StatusCode.DELETED, StatusCode.UPDATED),
    (StatusCode.ADDED, StatusCode.ADDED),
    (StatusCode.UPDATED, StatusCode.UPDATED),
}


@dataclass(frozen=True)
class FileStatus:
    """Status of one path as reported by a single status scan."""
    path: str
    index: StatusCode
    working_dir: StatusCode
    original_path: Optional[str] = None

    @property
    def is_conflicted(self) -> bool:
        return (self.index, self.working_dir) in _UNMERGED_PAIRS

    @property
    def is_untracked(self) -> bool:
        return self.index is StatusCode.UNTRACKED

    @property
    def state(self) -> str:
        """Two character state, e.g. 'DU' or 'M_'."""
        return f"{self.index.letter}{self.working_dir.letter}"

    def describe(self) -> str:
        return f"{self.index.description} / {self.working_dir.description}"


def parse_porcelain(output: str) -> List[FileStatus]:
    """Parse the output of ``git status --porcelain -z``.

    Each entry is ``XY<space>path`` terminated by NUL; renamed and copied
    entries are followed by an extra NUL terminated field holding the
    original path.

    Args:
        output: Raw output of the status command

    Returns:
        List of FileStatus entries in the order git reported them
    """
    entries = output.split("\0")
    result: List[FileStatus] = []
    idx = 0
    while idx < len(entries):
        entry = entries[idx]
        idx += 1
        if len(entry) < 4:
            continue

        index = StatusCode.parse(entry[0])
        working_dir = StatusCode.parse(entry[1])
        path = entry[3:]
        original_path = None
        if index in (StatusCode.RENAMED, StatusCode.COPIED) and idx < len(entries):
            original_path = entries[idx]
            idx += 1

        result.append(FileStatus(path, index, working_dir, original_path))

    return result
