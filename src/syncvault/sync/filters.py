"""Include/exclude patterns for file synchronization.

This module provides:
- compile_pattern: Turns a wildcard pattern into an anchored regex
- should_include: Exclude-first filtering policy
- PathFilter: Bundles include and exclude patterns for a run

Pattern syntax:
    ``*`` matches any run of characters (including ``/``), ``?`` matches a
    single character, everything else is literal. A leading ``!`` negates
    the pattern. Matching is anchored and case-insensitive, and is tried
    against both the relative path and the bare file name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import PurePath


@dataclass(frozen=True)
class CompiledPattern:
    """A wildcard pattern compiled to a regex."""

    source: str
    regex: re.Pattern[str]
    negated: bool

    def matches(self, value: str) -> bool:
        """Check a single string against the pattern."""
        if not value:
            return False
        found = self.regex.match(value) is not None
        return not found if self.negated else found


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> CompiledPattern:
    """Compile a wildcard pattern.

    Args:
        pattern: Pattern such as ``*.tmp``, ``docs/*`` or ``!*.md``.

    Returns:
        CompiledPattern anchored at both ends.
    """
    negated = pattern.startswith("!")
    body = pattern[1:] if negated else pattern
    escaped = re.escape(body).replace(r"\*", ".*").replace(r"\?", ".")
    regex = re.compile(f"^{escaped}$", re.IGNORECASE | re.DOTALL)
    return CompiledPattern(source=pattern, regex=regex, negated=negated)


def _to_posix(path: str | PurePath) -> str:
    return str(path).replace("\\", "/")


def matches_pattern(path: str | PurePath, pattern: str) -> bool:
    """Check whether a path or its file name matches a pattern."""
    if not pattern:
        return False
    posix = _to_posix(path)
    compiled = compile_pattern(pattern)
    name = posix.rsplit("/", 1)[-1]
    return compiled.matches(posix) or compiled.matches(name)


def should_include(
    path: str | PurePath,
    include_patterns: list[str] | None,
    exclude_patterns: list[str] | None,
) -> bool:
    """Decide whether a file takes part in the sync.

    Exclude patterns are checked first. If include patterns exist, the
    path must also match one of them.

    Args:
        path: Path relative to the tree root.
        include_patterns: Patterns a file must match (empty = everything).
        exclude_patterns: Patterns that exclude a file.

    Returns:
        True if the path should be synchronized.
    """
    include_patterns = include_patterns or []
    exclude_patterns = exclude_patterns or []

    if not include_patterns and not exclude_patterns:
        return True

    if any(matches_pattern(path, pattern) for pattern in exclude_patterns):
        return False

    if include_patterns:
        return any(matches_pattern(path, pattern) for pattern in include_patterns)

    return True


@dataclass
class PathFilter:
    """Include/exclude policy for one run.

    Include patterns only apply to files: a directory is walked unless it
    is excluded, so ``*.txt`` still finds text files in subdirectories.
    """

    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)

    def include_file(self, rel_path: str | PurePath) -> bool:
        """Check whether a file (relative path) should be synchronized."""
        return should_include(rel_path, self.include_patterns, self.exclude_patterns)

    def include_directory(self, rel_path: str | PurePath) -> bool:
        """Check whether a directory (relative path) should be walked."""
        return should_include(rel_path, [], self.exclude_patterns)
