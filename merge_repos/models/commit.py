"""Commit record model"""
from dataclasses import dataclass

from merge_repos.constants import MAX_COMMIT_MESSAGE_LENGTH, TRUNCATED_MARKER


@dataclass
class CommitRecord:
    """Accumulating commit message threaded through one unit of work.

    Once the message reaches ``max_length`` the truncation marker is
    appended a single time and further lines are dropped.
    """
    message: str = ""
    committed: bool = False
    max_length: int = MAX_COMMIT_MESSAGE_LENGTH
    truncated: bool = False

    def append(self, text: str) -> None:
        """Append a line (or block) to the message, respecting the length cap."""
        if self.truncated:
            return

        addition = text if not self.message else "\n" + text
        if len(self.message) + len(addition) <= self.max_length:
            self.message += addition
            return

        keep = max(0, self.max_length - len(TRUNCATED_MARKER) - 1)
        self.message = (self.message + addition)[:keep] + "\n" + TRUNCATED_MARKER
        self.truncated = True

    def extend(self, lines) -> None:
        for line in lines:
            self.append(line)

    def mark_committed(self) -> None:
        self.committed = True

    def lines(self):
        return [line for line in self.message.split("\n") if line.strip()]

    def prefixed(self, prefix: str) -> str:
        """The commit message with ``prefix`` in front, still within ``max_length``."""
        lead = f"{prefix} " if prefix else ""
        text = lead + self.message
        if len(text) <= self.max_length:
            return text

        if self.truncated:
            text = text[:-len(TRUNCATED_MARKER)].rstrip("\n")

        keep = max(0, self.max_length - len(TRUNCATED_MARKER) - 1)
        return text[:keep] + "\n" + TRUNCATED_MARKER
