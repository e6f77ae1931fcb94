"""StageBackup Rules System.

This module turns rule files into the list of files to back up:
- PatternMatcher: glob matching against a path or its base name
- Stage / Rule: parsed [include] and [exclude] directives
- StageCompiler: ordered, exclusion-scoped selection over the filesystem
"""

from .compiler import (
    ExclusionWindow,
    SelectedFile,
    StageCompiler,
    compile_stages,
    expand_glob,
    walk_tree,
)
from .patterns import PatternEntry, PatternMatcher, glob_match, has_magic, translate_glob
from .stages import Polarity, Rule, Stage, load_stage_files, load_stages

__all__ = [
    # Pattern matching
    "PatternEntry",
    "PatternMatcher",
    "glob_match",
    "has_magic",
    "translate_glob",
    # Stages
    "Polarity",
    "Rule",
    "Stage",
    "load_stages",
    "load_stage_files",
    # Compiler
    "ExclusionWindow",
    "SelectedFile",
    "StageCompiler",
    "compile_stages",
    "expand_glob",
    "walk_tree",
]
