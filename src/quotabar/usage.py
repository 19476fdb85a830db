from typing import Any, Callable, Mapping

from quotabar.models import TokenUsageFigures

Accessor = Callable[[Mapping[str, Any]], Any]


def _field(name: "str") -> "Accessor":
    return lambda usage: usage.get(name)


def _nested(outer: "str", inner: "str") -> "Accessor":
    def accessor(usage: "Mapping[str, Any]") -> "Any":
        details = usage.get(outer)
        if isinstance(details, Mapping):
            return details.get(inner)
        return None

    return accessor


# each logical figure lists its source fields in priority order:
# Anthropic naming first, then OpenAI-compatible naming
FIELD_SOURCES: "dict[str, list[Accessor]]" = {
    "input_tokens": [
        _field("input_tokens"),
        _field("prompt_tokens"),
    ],
    "output_tokens": [
        _field("output_tokens"),
        _field("completion_tokens"),
    ],
    "cache_creation_tokens": [
        _field("cache_creation_input_tokens"),
        _field("cache_creation_prompt_tokens"),
    ],
    "cache_read_tokens": [
        _field("cache_read_input_tokens"),
        _field("cache_read_prompt_tokens"),
        _field("cached_tokens"),
        _nested("prompt_tokens_details", "cached_tokens"),
    ],
    "total_tokens": [
        _field("total_tokens"),
    ],
}


def _as_count(value: "Any") -> "int":
    if isinstance(value, bool):
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(count, 0)


def first_nonzero(usage: "Mapping[str, Any]", sources: "list[Accessor]") -> "int":
    """
    evaluates accessors in order and returns the first non-zero
    count, or 0 when every source is absent or zero.
    """
    for accessor in sources:
        count = _as_count(accessor(usage))
        if count:
            return count
    return 0


def resolve_usage(usage: "Mapping[str, Any]") -> "TokenUsageFigures":
    """
    normalizes a usage object from any supported vendor format.
    """
    return TokenUsageFigures(
        **{
            figure: first_nonzero(usage, sources)
            for figure, sources in FIELD_SOURCES.items()
        }
    )
