"""
Tests for the publication history stores.
"""
from datetime import datetime

from storyshorts.publishing.history import (
    FilePublicationHistory,
    InMemoryPublicationHistory,
    normalize_title,
)


class TestNormalizeTitle:
    def test_whitespace_and_case(self):
        assert normalize_title("  Тайна   старого\nдома ") == normalize_title("тайна старого дома")


class TestInMemoryPublicationHistory:
    """Tests for the in-memory store."""

    def test_append_and_check(self):
        history = InMemoryPublicationHistory()
        assert history.is_published("Story") is False
        history.append("Story")
        assert history.is_published("  story ") is True
        assert len(history.load()) == 1


class TestFilePublicationHistory:
    """Tests for the file-backed store."""

    def test_missing_file_is_empty(self, temp_dir):
        assert FilePublicationHistory(temp_dir / "none.txt").load() == []

    def test_append_format(self, temp_dir):
        path = temp_dir / "history" / "published.txt"
        history = FilePublicationHistory(path)

        history.append("Тайна  старого дома", datetime(2025, 3, 1, 12, 30, 5, 999))

        assert path.read_text(encoding="utf-8") == "2025-03-01 12:30:05 - Тайна старого дома\n"

    def test_load_skips_malformed_lines(self, temp_dir):
        path = temp_dir / "published.txt"
        path.write_text(
            "2025-03-01 12:30:05 - First\n"
            "garbage line\n"
            "\n"
            "2025-03-02 08:00:00 - Second - with dash\n",
            encoding="utf-8",
        )

        records = FilePublicationHistory(path).load()

        assert [r.title for r in records] == ["First", "Second - with dash"]
        assert records[1].published_at == datetime(2025, 3, 2, 8, 0, 0)

    def test_persists_across_instances(self, temp_dir):
        path = temp_dir / "published.txt"
        FilePublicationHistory(path).append("Story")
        assert FilePublicationHistory(path).is_published("STORY")
