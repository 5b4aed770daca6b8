"""Pattern compilation for trigger clauses.

Everything here runs once, at rule-load time. Matching code only ever sees
compiled re.Pattern objects.
"""

import re

# Scoped inline groups like (?-i:...) still switch case sensitivity back on.
REGEX_FLAGS = re.IGNORECASE

_SEGMENT = "[^/]*"
_ANY_SEGMENTS = "(?:[^/]*/)*"


def compile_regex(pattern: str) -> re.Pattern:
    """Compile an intent or content pattern. Raises re.error if invalid."""
    return re.compile(pattern, REGEX_FLAGS)


def glob_to_regex(pattern: str) -> str:
    """Translate a path glob into an anchored regular expression.

    - ``**`` as a whole segment matches zero or more path segments
    - ``*`` matches any run of characters within one segment
    - ``?`` matches one character other than ``/``
    - ``[...]`` and ``[!...]`` are character classes

    Raises ValueError for an empty pattern.
    """
    if not pattern:
        raise ValueError("empty glob pattern")

    out = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            j = i
            while j < n and pattern[j] == "*":
                j += 1
            at_segment_start = i == 0 or pattern[i - 1] == "/"
            at_segment_end = j == n or pattern[j] == "/"
            if j - i >= 2 and at_segment_start and at_segment_end:
                if j == n:
                    out.append(".*")
                    i = j
                else:
                    out.append(_ANY_SEGMENTS)
                    i = j + 1
                continue
            out.append(_SEGMENT)
            i = j
            continue
        if c == "?":
            out.append("[^/]")
        elif c == "[":
            end = _class_end(pattern, i)
            if end < 0:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1:end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append("[" + body.replace("\\", "\\\\") + "]")
                i = end
        else:
            out.append(re.escape(c))
        i += 1

    return "".join(out)


def _class_end(pattern: str, start: int) -> int:
    """Index of the ']' closing the class opened at start, or -1."""
    j = start + 1
    if j < len(pattern) and pattern[j] in "!^":
        j += 1
    if j < len(pattern) and pattern[j] == "]":
        j += 1
    while j < len(pattern) and pattern[j] != "]":
        j += 1
    return j if j < len(pattern) else -1


def compile_glob(pattern: str) -> re.Pattern:
    """Compile a path glob. Use .fullmatch() against a relative path."""
    return re.compile(glob_to_regex(pattern), re.DOTALL)
