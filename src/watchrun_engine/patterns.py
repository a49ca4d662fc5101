"""Glob pattern compilation for include/exclude filtering.

Patterns use ``fnmatch`` syntax (``*``, ``?``, ``[...]``) plus ``{a,b}``
alternation. A pattern is matched against the whole event path and ``*``
crosses directory separators, so ``*.py`` matches ``src/pkg/mod.py``.
"""

import fnmatch
import re
from dataclasses import dataclass

from watchrun_engine.exceptions import PatternError

MAX_ALTERNATIVES = 256
"""Upper bound on the plain patterns one brace expression may expand to."""


def _check_balanced(text: str) -> None:
    depth = 0
    in_class = False
    for i, ch in enumerate(text):
        if in_class:
            if ch == "]":
                in_class = False
            continue
        if ch == "[":
            # fnmatch treats a leading ']' inside a class as a literal
            if text.find("]", i + 2 if text[i + 1 : i + 2] in ("]", "!") else i + 1) < 0:
                raise PatternError(f"unclosed character class in pattern {text!r}")
            in_class = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth < 0:
                raise PatternError(f"unexpected '}}' in pattern {text!r}")
    if depth:
        raise PatternError(f"unclosed '{{' in pattern {text!r}")


def _split_top_level(body: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    start = 0
    for i, ch in enumerate(body):
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append(body[start:i])
            start = i + 1
    parts.append(body[start:])
    return parts


def expand_braces(text: str) -> list[str]:
    """Expand ``{a,b}`` alternation into plain fnmatch patterns.

    Raises:
        PatternError: If the expansion would exceed ``MAX_ALTERNATIVES``

    >>> expand_braces("*.{py,txt}")
    ['*.py', '*.txt']
    """
    open_idx = text.find("{")
    if open_idx < 0:
        return [text]

    depth = 0
    for close_idx in range(open_idx, len(text)):
        if text[close_idx] == "{":
            depth += 1
        elif text[close_idx] == "}":
            depth -= 1
            if depth == 0:
                break
    else:
        raise PatternError(f"unclosed '{{' in pattern {text!r}")

    prefix = text[:open_idx]
    suffix = text[close_idx + 1 :]
    expanded: list[str] = []
    for alternative in _split_top_level(text[open_idx + 1 : close_idx]):
        for tail in expand_braces(alternative + suffix):
            expanded.append(prefix + tail)
            if len(expanded) > MAX_ALTERNATIVES:
                raise PatternError(f"pattern {text!r} expands to more than {MAX_ALTERNATIVES} alternatives")
    return expanded


@dataclass(frozen=True)
class Pattern:
    """A compiled glob; ``match`` answers whether a path matches it."""

    source: str
    regex: re.Pattern

    def match(self, path: str) -> bool:
        return self.regex.match(path) is not None


def compile_pattern(text: str) -> Pattern | None:
    """Compile a glob pattern.

    Args:
        text: Pattern source; an empty string means "no pattern"

    Returns:
        Compiled pattern, or None if ``text`` is empty

    Raises:
        PatternError: If the pattern is malformed
    """
    if not text:
        return None

    _check_balanced(text)
    alternatives = expand_braces(text)
    try:
        regex = re.compile("|".join(f"(?:{fnmatch.translate(alt)})" for alt in alternatives))
    except re.error as e:
        raise PatternError(f"can not compile pattern {text!r}: {e}") from e
    return Pattern(source=text, regex=regex)
