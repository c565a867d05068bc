"""Text helpers"""
import re

_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


def format_indent_lines(indent: int, value: str, max_length: int = -1) -> str:
    """Indent continuation lines of ``value`` and optionally wrap long lines at spaces.

    The first line is kept at the current position; every following line
    is prefixed with ``indent`` spaces. When ``max_length`` is positive,
    lines longer than the available width are split at the last space
    before the limit (or hard split when there is none).
    """
    src_lines = value.split("\n")
    if max_length <= 0:
        lines = src_lines
    else:
        lines = []
        width = max_length
        pending = list(src_lines)
        while pending:
            line = pending.pop(0).strip()
            if len(line) > width:
                pos = line.rfind(" ", 0, width + 1)
                if pos <= 0:
                    pos = width
                rest = line[pos:].strip()
                line = line[:pos]
                if rest:
                    pending.insert(0, rest)
            lines.append(line)
            width = max_length - indent

    result = lines[0] if lines else ""
    for line in lines[1:]:
        result += "\n" + " " * indent + line
    return result


def remove_trailing_comma(text: str) -> str:
    """Drop commas directly before a closing brace or bracket so lenient JSON parses."""
    return _TRAILING_COMMA.sub(r"\1", text)
