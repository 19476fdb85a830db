import json
import os
from pathlib import Path

from quotabar.transcript import (
    AssistantEntry,
    OtherEntry,
    SummaryEntry,
    TranscriptResolver,
    UserEntry,
    list_transcripts,
    parse_entry,
)


def _write(path: "Path", *entries: "object", mtime: "float | None" = None) -> "Path":
    lines = [e if isinstance(e, str) else json.dumps(e) for e in entries]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def _assistant(uuid: "str", **usage: "int") -> "dict":
    return {"uuid": uuid, "type": "assistant", "message": {"usage": usage}}


def _user(uuid: "str", parent: "str | None" = None) -> "dict":
    return {"uuid": uuid, "type": "user", "parentUuid": parent}


class TestParseEntry:
    def test_variants(self) -> "None":
        assert isinstance(parse_entry(json.dumps(_assistant("a", output_tokens=1))), AssistantEntry)
        assert isinstance(parse_entry(json.dumps(_user("u", "a"))), UserEntry)
        assert parse_entry('{"type":"summary","leafUuid":"x"}') == SummaryEntry(leaf_uuid="x")
        assert isinstance(parse_entry('{"type":"system","uuid":"s"}'), OtherEntry)

    def test_summary_without_leaf_is_other(self) -> "None":
        assert isinstance(parse_entry('{"type":"summary"}'), OtherEntry)

    def test_malformed_lines(self) -> "None":
        assert parse_entry("") is None
        assert parse_entry("{not json") is None
        assert parse_entry("[1, 2]") is None

    def test_assistant_without_usage(self) -> "None":
        entry = parse_entry('{"type":"assistant","uuid":"a","message":{}}')
        assert entry == AssistantEntry(uuid="a", usage=None)


class TestResolveCurrentFile:
    def test_last_assistant_usage(self, tmp_path: "Path") -> "None":
        path = _write(
            tmp_path / "s.jsonl",
            _assistant("a1", input_tokens=10),
            _user("u1", "a1"),
            _assistant("a2", input_tokens=100, output_tokens=20),
            _user("u2", "a2"),
        )
        usage = TranscriptResolver().resolve(path)
        assert usage is not None
        assert usage.context_tokens == 120

    def test_malformed_lines_are_skipped(self, tmp_path: "Path") -> "None":
        path = _write(
            tmp_path / "s.jsonl",
            _assistant("a1", output_tokens=7),
            "{broken",
            "",
            "not json at all",
        )
        assert TranscriptResolver().resolve(path).context_tokens == 7

    def test_deeply_nested_line_is_skipped(self, tmp_path: "Path") -> "None":
        path = _write(
            tmp_path / "s.jsonl",
            _assistant("a1", output_tokens=5),
            "[" * 100_000,
        )
        assert TranscriptResolver().resolve(path).context_tokens == 5

    def test_infinite_usage_counts_as_zero(self, tmp_path: "Path") -> "None":
        path = _write(
            tmp_path / "s.jsonl",
            '{"uuid":"a1","type":"assistant","message":{"usage":'
            '{"input_tokens":Infinity,"output_tokens":4}}}',
        )
        usage = TranscriptResolver().resolve(path)
        assert usage is not None
        assert usage.input_tokens == 0
        assert usage.context_tokens == 4

    def test_user_only_file_has_no_usage(self, tmp_path: "Path") -> "None":
        path = _write(tmp_path / "s.jsonl", _user("u1"), _user("u2", "u1"))
        # a newer sibling with usage must not be consulted for an existing file
        _write(tmp_path / "other.jsonl", _assistant("x", output_tokens=5))
        assert TranscriptResolver().resolve(path) is None

    def test_empty_file(self, tmp_path: "Path") -> "None":
        path = tmp_path / "s.jsonl"
        path.write_text("", encoding="utf-8")
        assert TranscriptResolver().resolve(path) is None


class TestResolveSummary:
    def test_summary_follows_leaf_uuid_into_other_file(self, tmp_path: "Path") -> "None":
        a = _write(
            tmp_path / "a.jsonl",
            _assistant("local", output_tokens=1000),
            {"type": "summary", "leafUuid": "u1"},
        )
        _write(
            tmp_path / "b.jsonl",
            {"uuid": "u1", "type": "assistant", "message": {"usage": {"output_tokens": 42}}},
        )
        usage = TranscriptResolver().resolve(a)
        assert usage is not None
        assert usage.context_tokens == 42

    def test_summary_via_user_parent(self, tmp_path: "Path") -> "None":
        a = _write(tmp_path / "a.jsonl", {"type": "summary", "leafUuid": "u1"})
        _write(
            tmp_path / "b.jsonl",
            _assistant("p1", input_tokens=3, cache_read_input_tokens=4),
            _user("u1", "p1"),
        )
        assert TranscriptResolver().resolve(a).context_tokens == 7

    def test_dangling_reference_has_no_usage(self, tmp_path: "Path") -> "None":
        a = _write(
            tmp_path / "a.jsonl",
            _assistant("local", output_tokens=9),
            {"type": "summary", "leafUuid": "missing"},
        )
        assert TranscriptResolver().resolve(a) is None

    def test_last_well_formed_line_decides(self, tmp_path: "Path") -> "None":
        a = _write(
            tmp_path / "a.jsonl",
            {"type": "summary", "leafUuid": "u1"},
            "{truncated",
        )
        _write(tmp_path / "b.jsonl", _assistant("u1", output_tokens=11))
        assert TranscriptResolver().resolve(a).context_tokens == 11


class TestFindFromHistory:
    def test_missing_file_uses_most_recent_sibling(self, tmp_path: "Path") -> "None":
        _write(tmp_path / "old.jsonl", _assistant("o", output_tokens=1), mtime=1000)
        _write(tmp_path / "new.jsonl", _assistant("n", output_tokens=2), mtime=3000)
        _write(tmp_path / "notes.txt", "ignored", mtime=5000)

        usage = TranscriptResolver().resolve(tmp_path / "gone.jsonl")
        assert usage.context_tokens == 2

    def test_skips_siblings_without_usage(self, tmp_path: "Path") -> "None":
        _write(tmp_path / "older.jsonl", _assistant("o", output_tokens=5), mtime=1000)
        _write(tmp_path / "newest.jsonl", _user("u"), mtime=3000)

        usage = TranscriptResolver().resolve(tmp_path / "gone.jsonl")
        assert usage.context_tokens == 5

    def test_missing_directory(self, tmp_path: "Path") -> "None":
        assert TranscriptResolver().resolve(tmp_path / "nope" / "gone.jsonl") is None

    def test_no_siblings(self, tmp_path: "Path") -> "None":
        assert TranscriptResolver().resolve(tmp_path / "gone.jsonl") is None


class TestListTranscripts:
    def test_sorted_by_mtime_descending(self, tmp_path: "Path") -> "None":
        _write(tmp_path / "a.jsonl", _user("1"), mtime=2000)
        _write(tmp_path / "b.jsonl", _user("2"), mtime=1000)
        _write(tmp_path / "c.jsonl", _user("3"), mtime=3000)
        (tmp_path / "d.jsonl").mkdir()

        names = [p.name for p in list_transcripts(tmp_path)]
        assert names == ["c.jsonl", "a.jsonl", "b.jsonl"]
