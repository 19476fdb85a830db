import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

import structlog

from quotabar.models import TokenUsageFigures
from quotabar.usage import resolve_usage

logger = structlog.get_logger()

TRANSCRIPT_SUFFIX = ".jsonl"


@dataclass(frozen=True, slots=True)
class AssistantEntry:
    uuid: "str | None"
    # None when the message carries no usage object
    usage: "dict[str, Any] | None"


@dataclass(frozen=True, slots=True)
class UserEntry:
    uuid: "str | None"
    parent_uuid: "str | None"


@dataclass(frozen=True, slots=True)
class SummaryEntry:
    """
    SummaryEntry delegates resolution to an earlier message
    identified by leaf_uuid, possibly in another session file.
    """

    leaf_uuid: "str"


@dataclass(frozen=True, slots=True)
class OtherEntry:
    uuid: "str | None"


TranscriptEntry = Union[AssistantEntry, UserEntry, SummaryEntry, OtherEntry]


def parse_entry(line: "str") -> "TranscriptEntry | None":
    """
    parses one transcript line. Returns None for blank or malformed
    lines so callers can skip them.
    """
    line = line.strip()
    if not line:
        return None
    try:
        raw = json.loads(line)
    except (json.JSONDecodeError, RecursionError):
        return None
    if not isinstance(raw, dict):
        return None

    entry_type = raw.get("type")
    uuid = raw.get("uuid")

    if entry_type == "summary" and raw.get("leafUuid"):
        return SummaryEntry(leaf_uuid=raw["leafUuid"])

    if entry_type == "assistant":
        message = raw.get("message")
        usage = message.get("usage") if isinstance(message, dict) else None
        return AssistantEntry(
            uuid=uuid,
            usage=usage if isinstance(usage, dict) else None,
        )

    if entry_type == "user":
        return UserEntry(uuid=uuid, parent_uuid=raw.get("parentUuid"))

    return OtherEntry(uuid=uuid)


def read_entries(path: "Path") -> "list[TranscriptEntry]":
    """
    reads every well-formed entry of a transcript file in order.
    Raises OSError when the file cannot be read.
    """
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        parsed = (parse_entry(line) for line in f)
        return [entry for entry in parsed if entry is not None]


def list_transcripts(directory: "Path") -> "list[Path]":
    """
    lists session files in directory, most recently modified first.
    """
    sessions: "list[tuple[float, Path]]" = []
    for candidate in directory.iterdir():
        if candidate.suffix != TRANSCRIPT_SUFFIX:
            continue
        try:
            if not candidate.is_file():
                continue
            sessions.append((candidate.stat().st_mtime, candidate))
        except OSError:
            continue

    sessions.sort(key=lambda item: item[0], reverse=True)
    return [path for _, path in sessions]


def _usage_of(entry: "TranscriptEntry") -> "TokenUsageFigures | None":
    if isinstance(entry, AssistantEntry) and entry.usage is not None:
        return resolve_usage(entry.usage)
    return None


class TranscriptResolver:
    """
    TranscriptResolver finds the token usage of the most recent
    assistant message of a session transcript.

    Resolution never raises: unreadable files, malformed lines and
    dangling references all resolve to None ("no usage").
    """

    def resolve(self, transcript_path: "str | Path") -> "TokenUsageFigures | None":
        path = Path(transcript_path)

        if not path.exists():
            logger.debug("transcript_missing", path=str(path))
            return self._find_from_history(path.parent)

        return self._try_file(path)

    def _try_file(self, path: "Path") -> "TokenUsageFigures | None":
        try:
            entries = read_entries(path)
        except OSError as e:
            logger.debug("transcript_unreadable", path=str(path), error=str(e))
            return None

        if not entries:
            return None

        last = entries[-1]
        if isinstance(last, SummaryEntry):
            return self._resolve_by_reference(last.leaf_uuid, path.parent)

        for entry in reversed(entries):
            usage = _usage_of(entry)
            if usage is not None:
                return usage

        return None

    def _resolve_by_reference(
        self,
        target_uuid: "str",
        directory: "Path",
    ) -> "TokenUsageFigures | None":
        """
        searches every session file in directory for the message
        with target_uuid. A user message is followed one hop to its
        parent assistant message within the same file.
        """
        try:
            candidates = sorted(directory.iterdir())
        except OSError as e:
            logger.debug("transcript_dir_unreadable", path=str(directory), error=str(e))
            return None

        for candidate in candidates:
            if candidate.suffix != TRANSCRIPT_SUFFIX or not candidate.is_file():
                continue
            try:
                entries = read_entries(candidate)
            except OSError:
                continue

            usage = self._search_uuid(entries, target_uuid)
            if usage is not None:
                logger.debug(
                    "transcript_reference_resolved",
                    uuid=target_uuid,
                    path=str(candidate),
                )
                return usage

        return None

    @staticmethod
    def _search_uuid(
        entries: "list[TranscriptEntry]",
        target_uuid: "str",
    ) -> "TokenUsageFigures | None":
        for entry in entries:
            if isinstance(entry, SummaryEntry) or entry.uuid != target_uuid:
                continue

            if isinstance(entry, AssistantEntry):
                return _usage_of(entry)

            if isinstance(entry, UserEntry) and entry.parent_uuid:
                for parent in entries:
                    if isinstance(parent, AssistantEntry) and parent.uuid == entry.parent_uuid:
                        usage = _usage_of(parent)
                        if usage is not None:
                            return usage
            # first match decides for this file
            return None

        return None

    def _find_from_history(self, directory: "Path") -> "TokenUsageFigures | None":
        try:
            sessions = list_transcripts(directory)
        except OSError as e:
            logger.debug("transcript_dir_unreadable", path=str(directory), error=str(e))
            return None

        for session in sessions:
            usage = self._try_file(session)
            if usage is not None:
                logger.debug("transcript_history_resolved", path=str(session))
                return usage

        return None
