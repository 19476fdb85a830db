def _trim(value: "float") -> "str":
    # one decimal, dropping a trailing ".0"
    text = f"{value:.1f}"
    return text[:-2] if text.endswith(".0") else text


def format_number(num: "int", locale: "str" = "zh-CN") -> "str":
    """
    formats a token count with locale magnitude suffixes:
    亿/万 for zh-CN, B/K for en-US. Small numbers keep thousands
    grouping.
    """
    if locale == "en-US":
        if num >= 100_000_000:
            return _trim(num / 100_000_000) + "B"
        if num >= 10_000:
            return _trim(num / 1_000) + "K"
        return f"{num:,}"

    if num >= 100_000_000:
        return _trim(num / 100_000_000) + "亿"
    if num >= 10_000:
        return _trim(num / 10_000) + "万"
    return f"{num:,}"


def format_tokens(tokens: "int") -> "str":
    if tokens >= 1_000_000:
        return f"{round(tokens / 100_000) / 10:g}M"
    if tokens >= 1_000:
        return f"{round(tokens / 100) / 10:g}k"
    return str(tokens)


def format_context_size(size: "int") -> "str":
    if size >= 1_000_000:
        return f"{round(size / 100_000) / 10:g}M"
    if size >= 1_000:
        return f"{round(size / 1_000)}K"
    return str(size)


def format_duration(hours: "int", minutes: "int") -> "str":
    if hours > 0:
        return f"{hours}h{minutes}m"
    return f"{minutes}m"
