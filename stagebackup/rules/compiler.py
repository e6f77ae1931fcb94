#!/usr/bin/env python3
"""Compile include/exclude stages into the ordered list of files to archive.

Stages are evaluated in two passes. The first pass gathers every exclude
pattern, in stage order, into an exclusion window. The second pass walks
the stages again: include stages expand their globs and walk each match,
while exclude stages retire their own patterns from the front of the
window. An include stage is therefore only filtered by the exclude stages
written *after* it:

    [include]        selects a.txt; secret.txt is filtered out by the
    *.txt            exclude stage that follows
    [exclude]
    secret.txt
    [include]        selects secret.txt; the exclude stage above has
    secret.txt       already been retired

See ExclusionWindow for the exact rule.
"""

import os
import posixpath
import stat
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from stagebackup.core.constants import is_selectable
from stagebackup.infrastructure.logger import Logger, get_logger
from stagebackup.rules.patterns import PatternMatcher, has_magic, translate_glob
from stagebackup.rules.stages import Rule, Stage


@dataclass(frozen=True)
class SelectedFile:
    """A path chosen for archiving, relative to the compile root."""

    path: str
    root: str = "."
    origin: str = ""
    line: int = 0

    @property
    def fs_path(self) -> str:
        """Path usable with os functions regardless of the working directory."""
        return os.path.join(self.root, self.path)


class ExclusionWindow:
    """The exclude patterns still pending during a compile pass.

    Invariant: while an include stage is being evaluated, the window holds
    exactly the patterns of the exclude stages that come after it in stage
    order, oldest first. It starts with every exclude pattern; each exclude
    stage passed during the second pass retires as many patterns from the
    front as it has rules, and those front patterns are always its own.
    """

    def __init__(self, patterns: Optional[Sequence[str]] = None):
        self._matcher = PatternMatcher(list(patterns or []))

    @classmethod
    def from_stages(cls, stages: Sequence[Stage]) -> "ExclusionWindow":
        """Seed the window with every exclude pattern in stage order."""
        patterns: List[str] = []
        for stage in stages:
            if not stage.is_include:
                patterns.extend(stage.patterns)
        return cls(patterns)

    def matches(self, path: str) -> bool:
        return self._matcher.matches(path)

    def retire(self, stage: Stage) -> List[str]:
        """Drop an exclude stage's patterns once it has been passed."""
        return self._matcher.remove_first(len(stage.rules))

    @property
    def patterns(self) -> List[str]:
        return self._matcher.get_patterns()

    def __len__(self) -> int:
        return len(self._matcher)


def join_path(directory: str, name: str) -> str:
    """Join and lexically clean a relative path."""
    return posixpath.normpath(posixpath.join(directory, name))


def _on_disk(root: str, path: str) -> str:
    return os.path.join(root, path)


def _list_matches(root: str, directory: str, pattern: str) -> List[str]:
    """Entries of ``directory`` whose names match ``pattern``, sorted."""
    try:
        if not stat.S_ISDIR(os.stat(_on_disk(root, directory)).st_mode):
            return []
        names = sorted(os.listdir(_on_disk(root, directory)))
    except OSError:
        return []

    compiled = translate_glob(pattern)
    if compiled is None:
        return []
    return [join_path(directory, n) for n in names if compiled.fullmatch(n)]


def expand_glob(pattern: str, root: str = ".") -> List[str]:
    """Expand a glob pattern against the filesystem under ``root``.

    A pattern without metacharacters yields itself if it exists (without
    following a trailing symlink). Otherwise each directory level is
    expanded in turn and entries are matched in sorted order. Malformed
    patterns and unreadable directories contribute no matches.

    Args:
        pattern: Glob pattern, relative to root unless absolute
        root: Directory relative patterns are resolved against

    Returns:
        Matching paths, spelled relative to root
    """
    if not has_magic(pattern):
        try:
            os.lstat(_on_disk(root, pattern))
        except OSError:
            return []
        return [pattern]

    directory, name = posixpath.split(pattern)
    if directory == "":
        directory = "."
    elif directory != "/" * len(directory):
        directory = directory.rstrip("/")

    if not has_magic(directory):
        return _list_matches(root, directory, name)

    if directory == pattern:
        return []

    matches: List[str] = []
    for parent in expand_glob(directory, root):
        matches.extend(_list_matches(root, parent, name))
    return matches


def walk_tree(
    start: str,
    root: str = ".",
    prune: Optional[Callable[[str, os.stat_result], bool]] = None,
) -> Iterator[Tuple[str, os.stat_result]]:
    """Walk a tree in pre-order without following symlinks.

    Children are visited in lexical order. A directory is not descended into
    when ``prune(path, st)`` returns True. Entries that vanish or cannot be
    read are skipped.

    Yields:
        (path, lstat result) for every visited entry, including ``start``
    """
    try:
        st = os.lstat(_on_disk(root, start))
    except OSError:
        return

    stack = [(start, st)]
    while stack:
        path, st = stack.pop()
        yield path, st

        if not stat.S_ISDIR(st.st_mode) or (prune is not None and prune(path, st)):
            continue

        try:
            names = sorted(os.listdir(_on_disk(root, path)))
        except OSError:
            continue

        children = []
        for name in names:
            child = join_path(path, name)
            try:
                children.append((child, os.lstat(_on_disk(root, child))))
            except OSError:
                continue
        stack.extend(reversed(children))


class StageCompiler:
    """Turns an ordered stage sequence into an ordered file selection.

    The compiler never changes the working directory; relative patterns are
    resolved against ``root`` and selected paths are reported relative to it.
    """

    def __init__(self, root: str = ".", logger: Optional[Logger] = None):
        self.root = root
        self._logger = logger or get_logger()

    def iter_selection(self, stages: Sequence[Stage]) -> Iterator[SelectedFile]:
        """Lazily yield selected files in discovery order.

        Files reachable from several include rules are yielded each time
        they are reached.
        """
        window = ExclusionWindow.from_stages(stages)

        for stage in stages:
            if stage.is_include:
                for rule in stage.rules:
                    for match in expand_glob(rule.pattern, self.root):
                        yield from self._select(match, window, stage, rule)
            else:
                retired = window.retire(stage)
                self._logger.debug(
                    "Retired exclude stage", origin=stage.origin, patterns=len(retired)
                )

    def compile(self, stages: Sequence[Stage]) -> List[SelectedFile]:
        """Compile stages into the full selection list."""
        return list(self.iter_selection(stages))

    def _select(
        self, start: str, window: ExclusionWindow, stage: Stage, rule: Rule
    ) -> Iterator[SelectedFile]:
        def excluded_dir(path: str, st: os.stat_result) -> bool:
            return window.matches(path)

        for path, st in walk_tree(start, self.root, prune=excluded_dir):
            mode = st.st_mode
            if not is_selectable(mode) or stat.S_ISDIR(mode):
                continue
            if window.matches(path):
                continue
            yield SelectedFile(path=path, root=self.root, origin=stage.origin, line=rule.line)


def compile_stages(stages: Sequence[Stage], root: str = ".") -> List[SelectedFile]:
    """Compile stages against ``root`` with a default compiler."""
    return StageCompiler(root).compile(stages)
