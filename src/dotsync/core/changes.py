"""
Classification of change sets into significant vs. noise.

Editors and operating systems constantly touch swap files, logs and
metadata. Committing those would push a sync on every keystroke, so a
change set only counts as significant when at least one path is not
matched by any trivial pattern.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Callable, Iterable, Sequence
from pathlib import PurePosixPath

TrivialPattern = Callable[[str], bool]


def suffix_pattern(*suffixes: str) -> TrivialPattern:
    """Match paths ending in any of ``suffixes`` (e.g. ``.swp``)."""

    def matches(path: str) -> bool:
        return path.endswith(suffixes)

    return matches


def name_pattern(*names: str) -> TrivialPattern:
    """Match paths whose final component is one of ``names``."""
    wanted = frozenset(names)

    def matches(path: str) -> bool:
        return PurePosixPath(path).name in wanted

    return matches


def glob_pattern(pattern: str) -> TrivialPattern:
    """Match the full path or its final component against a shell glob."""

    def matches(path: str) -> bool:
        return fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(PurePosixPath(path).name, pattern)

    return matches


DEFAULT_TRIVIAL_PATTERNS: tuple[TrivialPattern, ...] = (
    suffix_pattern(".tmp", ".swp", ".test", ".log", ".bak"),
    name_pattern(".DS_Store", "Thumbs.db", "desktop.ini"),
    suffix_pattern(".history", ".cache"),
    suffix_pattern(".local"),
)


def is_significant(
    change_set: Iterable[str],
    trivial_patterns: Sequence[TrivialPattern] = DEFAULT_TRIVIAL_PATTERNS,
) -> bool:
    """
    Decide whether a change set is worth syncing.

    Returns:
        False if the set is empty or every path matches a trivial pattern;
        True as soon as one path matches none of them.
    """
    for path in change_set:
        if not path:
            continue
        if not any(pattern(path) for pattern in trivial_patterns):
            return True
    return False


class ChangeClassifier:
    """
    Ordered list of trivial patterns with the classification helpers.

    Example:
        >>> classifier = ChangeClassifier.with_globs(["*.orig"])
        >>> classifier.is_significant([".zshrc.swp", "dot_zshrc"])
        True
    """

    def __init__(self, patterns: Sequence[TrivialPattern] = DEFAULT_TRIVIAL_PATTERNS) -> None:
        self.patterns = list(patterns)

    @classmethod
    def with_globs(cls, globs: Iterable[str]) -> ChangeClassifier:
        """Default patterns followed by user-configured globs."""
        return cls([*DEFAULT_TRIVIAL_PATTERNS, *(glob_pattern(g) for g in globs)])

    def is_trivial(self, path: str) -> bool:
        return any(pattern(path) for pattern in self.patterns)

    def is_significant(self, change_set: Iterable[str]) -> bool:
        return is_significant(change_set, self.patterns)

    def significant_paths(self, change_set: Iterable[str]) -> list[str]:
        """Paths in the change set that are not trivial, in order."""
        return [path for path in change_set if path and not self.is_trivial(path)]
