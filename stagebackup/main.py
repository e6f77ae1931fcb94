#!/usr/bin/env python3
"""Run a backup build from loaded configuration.

This module handles:
- Loading rule files into stages
- Building the compression and encryption layers
- Opening destination sinks
- Compiling the selection and streaming it into the archive
- Tearing the stream down in order: archive, compression, encryption, sink

Example:
    >>> from stagebackup.main import run_backup
    >>> run_backup(config, logger)
"""

import os
import sys
from contextlib import ExitStack
from typing import BinaryIO, List, Optional

from stagebackup.archive.emitter import ArchiveEmitter, EmitStats
from stagebackup.archive.metadata import IdentityResolver, SystemIdentityResolver
from stagebackup.core.constants import DEFAULT_LIST_FILE, ConfigKey, ErrorCode, Limits
from stagebackup.core.errors import BackupError
from stagebackup.infrastructure.config_manager import ConfigManager
from stagebackup.infrastructure.logger import Logger
from stagebackup.rules.compiler import StageCompiler
from stagebackup.rules.stages import Stage, load_stage_files
from stagebackup.transforms.base import StreamTransform
from stagebackup.transforms.compression import CompressionTransform
from stagebackup.transforms.encryption import EncryptionTransform, PassphraseSource
from stagebackup.transforms.pipeline import TransformPipeline
from stagebackup.transforms.sinks import MultiSink


class BackupMain:
    """
    Main class for one backup build.

    Owns component construction and the strict teardown order of the
    archive stream.
    """

    def __init__(
        self,
        config: ConfigManager,
        logger: Logger,
        passphrase_source: Optional[PassphraseSource] = None,
        resolver: Optional[IdentityResolver] = None,
        stdout: Optional[BinaryIO] = None,
    ):
        """
        Initialize backup controller.

        Args:
            config: Merged configuration
            logger: Logger instance
            passphrase_source: Passphrase provider when encryption is enabled
                (default: terminal prompt)
            resolver: Owner/group name lookups
            stdout: Stream used when no output path is configured
        """
        self.config = config
        self.logger = logger
        self.passphrase_source = passphrase_source
        self.resolver = resolver or SystemIdentityResolver()
        self.stdout = stdout
        self.stats: Optional[EmitStats] = None

    @property
    def list_paths(self) -> List[str]:
        return list(self.config.get(ConfigKey.LISTS) or [DEFAULT_LIST_FILE])

    @property
    def output_paths(self) -> List[str]:
        return list(self.config.get(ConfigKey.OUTPUTS) or [])

    def resolve_root(self) -> str:
        """Directory that relative rule patterns are resolved against.

        Raises:
            BackupError: If the directory does not exist
        """
        root = os.path.expanduser(str(self.config.get(ConfigKey.ROOT, "~")))
        if not os.path.isdir(root):
            raise BackupError(f"Unable to find backup root directory: {root}")
        return root

    def load_stages(self) -> List[Stage]:
        stages = load_stage_files(self.list_paths, self.logger)
        self.logger.info(f"Loaded {len(stages)} stage(s) from {len(self.list_paths)} list file(s)")
        return stages

    def build_transforms(self) -> List[StreamTransform]:
        """
        Create stream layers, producer-side first.

        Encryption setup (passphrase, IV) happens here, before any output
        file is opened.
        """
        transforms: List[StreamTransform] = [
            CompressionTransform(
                algorithm=self.config.get("compression.algorithm", "gzip"),
                compression_level=int(
                    self.config.get("compression.level", Limits.DEFAULT_COMPRESSION_LEVEL)
                ),
            )
        ]

        if self.config.get("encryption.enabled", False):
            self.logger.debug("Creating EncryptionTransform")
            transforms.append(
                EncryptionTransform(
                    passphrase_source=self.passphrase_source,
                    mode=self.config.get("encryption.mode", "ctr"),
                )
            )

        return transforms

    def open_sink(self, stack: ExitStack) -> MultiSink:
        """
        Open every output path, or fall back to standard output.

        Raises:
            BackupError: If any output cannot be opened
        """
        if not self.output_paths:
            return MultiSink([self.stdout or sys.stdout.buffer], ["<stdout>"])

        handles = []
        for path in self.output_paths:
            try:
                handles.append(stack.enter_context(open(path, "wb")))
            except OSError as e:
                raise BackupError(f"Unable to open output '{path}': {e.strerror or e}")

        return MultiSink(handles, self.output_paths)

    def build(self) -> EmitStats:
        """
        Run the build.

        Returns:
            Emission counters

        Raises:
            BackupError: On any fatal error
        """
        stages = self.load_stages()
        root = self.resolve_root()
        transforms = self.build_transforms()

        with ExitStack() as stack:
            sink = self.open_sink(stack)
            pipeline = TransformPipeline(sink, transforms, logger=self.logger)
            pipeline.open()
            emitter = ArchiveEmitter(pipeline, resolver=self.resolver, logger=self.logger)

            compiler = StageCompiler(root, logger=self.logger)
            failure: Optional[BaseException] = None
            try:
                self.stats = emitter.emit(compiler.iter_selection(stages))
            except BaseException as e:
                failure = e

            errors = self._teardown(emitter, pipeline)
            if failure is not None:
                raise failure
            if errors:
                raise errors[0]

        return self.stats

    def _teardown(self, emitter: ArchiveEmitter, pipeline: TransformPipeline) -> List[Exception]:
        """Close the archive, then the pipeline, collecting failures."""
        errors: List[Exception] = []
        for closer in (emitter.close, pipeline.close):
            try:
                closer()
            except Exception as e:
                errors.append(e)
        return errors

    def run(self) -> int:
        """
        Run the build and map the outcome to an exit code.

        Returns:
            Exit code
        """
        try:
            stats = self.build()
        except KeyboardInterrupt:
            self.logger.info("Interrupted by user")
            return ErrorCode.INTERRUPTED
        except BackupError as e:
            self.logger.error(e.message)
            return e.error_code

        self.logger.info(
            f"Archived {stats.written} file(s), skipped {stats.skipped}, "
            f"{stats.bytes} content byte(s)"
        )
        return ErrorCode.SUCCESS


def run_backup(
    config: ConfigManager,
    logger: Logger,
    passphrase_source: Optional[PassphraseSource] = None,
) -> int:
    """
    Entry point for running a backup build.

    Args:
        config: Merged configuration
        logger: Logger instance
        passphrase_source: Optional passphrase provider

    Returns:
        Exit code
    """
    return BackupMain(config, logger, passphrase_source=passphrase_source).run()
