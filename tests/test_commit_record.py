"""Tests for commit records and merge digests"""
from merge_repos.constants import TRUNCATED_MARKER
from merge_repos.core.pipeline import merge_message
from merge_repos.models.commit import CommitRecord


class TestCommitRecord:
    """Test accumulating commit messages."""

    def test_append_joins_with_newlines(self):
        record = CommitRecord("first")
        record.append("second")
        record.extend(["third", "fourth"])

        assert record.message == "first\nsecond\nthird\nfourth"
        assert not record.committed

    def test_append_to_empty_record(self):
        record = CommitRecord()
        record.append("only")
        assert record.message == "only"

    def test_truncation_marker_added_once(self):
        """Test the message is capped and the marker appears a single time."""
        record = CommitRecord("header", max_length=60)
        for idx in range(20):
            record.append(f"line number {idx}")

        assert record.truncated
        assert record.message.count(TRUNCATED_MARKER) == 1
        assert record.message.endswith(TRUNCATED_MARKER)
        assert len(record.message) <= 60

    def test_mark_committed(self):
        record = CommitRecord("message")
        record.mark_committed()
        assert record.committed

    def test_lines_skip_blank(self):
        record = CommitRecord("a\n\n  \nb")
        assert record.lines() == ["a", "b"]


class TestMergeMessage:
    """Test the merge commit digest."""

    def test_empty_record(self):
        assert merge_message(CommitRecord()) == ""

    def test_short_record(self):
        record = CommitRecord("repo @ [abc]\ncommit abc\nAuthor: me")
        assert merge_message(record) == "## repo @ [abc]\n  - commit abc\n  - Author: me"

    def test_long_record_is_elided(self):
        record = CommitRecord("\n".join(f"line {idx}" for idx in range(10)))
        digest = merge_message(record)

        assert digest.startswith("## line 0")
        assert "  - line 4" in digest
        assert "line 5" not in digest
        assert digest.endswith("\n  - ...")


class TestPrefixedMessage:
    """Test the commit prefix counts against the length cap."""

    def test_short_message(self):
        assert CommitRecord("Added a file").prefixed("[AutoMerge]") == "[AutoMerge] Added a file"

    def test_no_prefix(self):
        assert CommitRecord("Added a file").prefixed("") == "Added a file"

    def test_prefix_pushes_message_over_cap(self):
        record = CommitRecord("x" * 55, max_length=60)

        message = record.prefixed("[AutoMerge]")

        assert len(message) <= 60
        assert message.startswith("[AutoMerge] xxx")
        assert message.endswith(TRUNCATED_MARKER)

    def test_truncated_record_keeps_single_marker(self):
        record = CommitRecord("header", max_length=60)
        for idx in range(20):
            record.append(f"line number {idx}")

        message = record.prefixed("[AutoMerge]")

        assert len(message) <= 60
        assert message.count(TRUNCATED_MARKER) == 1
        assert message.endswith(TRUNCATED_MARKER)
