#!/usr/bin/env python3
"""Include/exclude stages and the rule-file loader.

A rule file is a plain text list of glob patterns split into stages:

    [include]
    Documents
    *.conf

    [exclude]
    *.tmp

Each ``[include]`` or ``[exclude]`` marker opens a new stage, and every
non-blank line after it is a pattern of that stage. Lines before the first
marker are ignored. Several rule files are concatenated in the order given.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from stagebackup.infrastructure.logger import Logger, get_logger

INCLUDE_MARKER = "[include]"
EXCLUDE_MARKER = "[exclude]"


class Polarity(Enum):
    """Whether a stage adds files or hides them."""

    INCLUDE = "include"
    EXCLUDE = "exclude"


@dataclass(frozen=True)
class Rule:
    """One glob pattern and the line it came from."""

    pattern: str
    line: int = 0


@dataclass(frozen=True)
class Stage:
    """A single [include] or [exclude] directive with its rules, in source order."""

    polarity: Polarity
    origin: str = ""
    rules: Tuple[Rule, ...] = field(default_factory=tuple)

    @property
    def is_include(self) -> bool:
        return self.polarity is Polarity.INCLUDE

    @property
    def patterns(self) -> List[str]:
        return [rule.pattern for rule in self.rules]

    @classmethod
    def include(cls, *patterns: str, origin: str = "") -> "Stage":
        """Build an include stage from bare patterns."""
        return cls(Polarity.INCLUDE, origin, tuple(Rule(p) for p in patterns))

    @classmethod
    def exclude(cls, *patterns: str, origin: str = "") -> "Stage":
        """Build an exclude stage from bare patterns."""
        return cls(Polarity.EXCLUDE, origin, tuple(Rule(p) for p in patterns))


def load_stages(lines: Iterable[str], origin: str = "") -> List[Stage]:
    """Parse rule-file lines into stages.

    Args:
        lines: Lines of one rule source (with or without newlines)
        origin: Name recorded on each stage, usually the file path

    Returns:
        Stages in the order their markers appear
    """
    stages: List[Stage] = []
    polarity: Optional[Polarity] = None
    rules: List[Rule] = []

    def close_stage() -> None:
        if polarity is not None:
            stages.append(Stage(polarity, origin, tuple(rules)))

    for number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if line == INCLUDE_MARKER or line == EXCLUDE_MARKER:
            close_stage()
            polarity = Polarity.INCLUDE if line == INCLUDE_MARKER else Polarity.EXCLUDE
            rules = []
        elif not line:
            continue
        elif polarity is not None:
            rules.append(Rule(pattern=line, line=number))

    close_stage()
    return stages


def load_stage_files(paths: Sequence[str], logger: Optional[Logger] = None) -> List[Stage]:
    """Load and concatenate stages from several rule files.

    A rule file that cannot be opened is reported and skipped; the
    remaining files are still loaded.

    Args:
        paths: Rule file paths, in evaluation order
        logger: Logger for per-file diagnostics

    Returns:
        All stages from all readable files
    """
    logger = logger or get_logger()
    stages: List[Stage] = []

    for path in paths:
        try:
            with open(path, "r", encoding="utf-8", errors="surrogateescape") as f:
                loaded = load_stages(f, origin=path)
        except OSError as e:
            logger.error(f"Unable to open list file '{path}': {e.strerror or e}")
            continue

        logger.debug("Loaded rule file", origin=path, stages=len(loaded))
        stages.extend(loaded)

    return stages
