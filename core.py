#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Core hardlinking logic: mirroring a directory tree with a pool of link workers."""

import errno
import os
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import path_probe
from config import (
    COUNT_ATTEMPTED,
    COUNTING_MODES,
    DEFAULT_MAX_PENDING,
    DEFAULT_WORKER_COUNT,
    PROGRESS_INTERVAL,
    SPECIAL_ENTRY_POLICIES,
    SPECIAL_SKIP,
    SPECIAL_WARN,
)
from errors import (
    AlreadyExistsError,
    LinkFailure,
    NestedDestinationError,
    SourceNotADirectoryError,
    TraversalError,
)
from logger_utils import get_logger
from path_probe import EntryKind
from worker_pool import WorkerPool

logger = get_logger("hardlinker.core")


@dataclass(frozen=True)
class LinkTask:
    source: str
    destination: str


@dataclass
class MirrorResult:
    """
    Summary of one mirror run.

    With counting="attempted" a file counts as soon as its link task is submitted,
    so failed links are still included in items_created. With counting="confirmed"
    only links that were actually created count.
    """
    source_root: str
    dest_root: str
    directories: int = 0
    files_submitted: int = 0
    links_created: int = 0
    links_failed: int = 0
    skipped: int = 0
    elapsed: float = 0.0
    counting: str = COUNT_ATTEMPTED
    traversal_errors: List[TraversalError] = field(default_factory=list)
    link_failures: List[LinkFailure] = field(default_factory=list)

    @property
    def items_created(self) -> int:
        if self.counting == COUNT_ATTEMPTED:
            return self.directories + self.files_submitted
        return self.directories + self.links_created

    @property
    def throughput(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.items_created / self.elapsed


def create_hardlink(source, destination) -> None:
    """
    Create `destination` as a new directory entry for the file at `source`.

    Raises:
        LinkFailure: destination exists, source is not a regular file, or the two
                     paths are on different volumes.
    """
    try:
        # A missing source is left to os.link so the error stays ENOENT
        if path_probe.exists(source) and not path_probe.is_regular_file(source):
            raise OSError(errno.EPERM, "Not a regular file", os.fspath(source))
        os.link(source, destination)
    except OSError as e:
        raise LinkFailure(source, destination, e) from e


def _link_task_handler(task: LinkTask) -> None:
    create_hardlink(task.source, task.destination)


def _check_mirror_args(source_root: str, dest_root: str, worker_count: int, counting: str, special_entries: str):
    if worker_count < 1:
        raise ValueError(f"worker_count must be at least 1, got {worker_count}")
    if counting not in COUNTING_MODES:
        raise ValueError(f"Unknown counting mode '{counting}'. Expected one of {COUNTING_MODES}")
    if special_entries not in SPECIAL_ENTRY_POLICIES:
        raise ValueError(f"Unknown special entry policy '{special_entries}'. Expected one of {SPECIAL_ENTRY_POLICIES}")
    if not path_probe.is_dir(source_root):
        raise SourceNotADirectoryError(source_root)
    if path_probe.exists(dest_root):
        raise AlreadyExistsError(dest_root)
    real_source = os.path.realpath(source_root)
    real_dest = os.path.realpath(dest_root)
    if os.path.commonpath([real_source, real_dest]) == real_source:
        raise NestedDestinationError(source_root, dest_root)


def mirror_tree(
    source_root,
    dest_root,
    worker_count: int = DEFAULT_WORKER_COUNT,
    counting: str = COUNT_ATTEMPTED,
    special_entries: str = SPECIAL_SKIP,
    max_pending: int = DEFAULT_MAX_PENDING,
    progress: Optional[Callable[[int], None]] = None,
    progress_interval: int = PROGRESS_INTERVAL,
    link_fn: Callable[[LinkTask], None] = _link_task_handler,
) -> MirrorResult:
    """
    Recreate the directory structure of `source_root` under `dest_root`, replacing
    every regular file with a hard link to the original.

    Directories are created by the calling thread during a depth-first walk, so a
    directory always exists before any link inside it is submitted. File links are
    handed to a pool of `worker_count` threads.

    Args:
        source_root: Existing directory to mirror.
        dest_root: Path that must not exist yet.
        worker_count: Number of link worker threads.
        counting: 'attempted' counts files at submission, 'confirmed' at success.
        special_entries: 'skip' ignores symlinks and special files silently,
                         'warn' logs a warning for each one.
        max_pending: Bound on queued link tasks; 0 means unbounded.
        progress: Optional callback receiving the running item count.
        progress_interval: Items between progress callbacks.
        link_fn: Executes one LinkTask; replaceable for benchmarking.

    Returns:
        MirrorResult for the run.
    """
    source_root = os.fspath(source_root)
    dest_root = os.fspath(dest_root)
    _check_mirror_args(source_root, dest_root, worker_count, counting, special_entries)

    os.mkdir(dest_root)
    result = MirrorResult(source_root=source_root, dest_root=dest_root, counting=counting)
    result.directories = 1
    logger.info(f"Mirroring '{source_root}' -> '{dest_root}' with {worker_count} workers")

    next_report = progress_interval
    start = time.monotonic()
    with WorkerPool(worker_count, link_fn, max_pending=max_pending, name="link") as pool:
        # Frames hold fully read listings, so only one directory is open at a time
        stack = [(iter(_read_source_dir(source_root, result)), dest_root)]
        while stack:
            entries, dst_dir = stack[-1]
            entry = next(entries, None)
            if entry is None:
                stack.pop()
                continue

            dst = os.path.join(dst_dir, entry.name)
            kind = path_probe.classify_entry(entry)
            if kind is EntryKind.DIRECTORY:
                try:
                    os.mkdir(dst)
                except OSError as e:
                    _record_traversal_error(result, entry.path, e)
                    continue
                result.directories += 1
                stack.append((iter(_read_source_dir(entry.path, result)), dst))
            elif kind is EntryKind.FILE:
                pool.submit(LinkTask(entry.path, dst))
                result.files_submitted += 1
            else:
                result.skipped += 1
                if special_entries == SPECIAL_WARN:
                    logger.warning(f"Skipping '{entry.path}': not a regular file or directory")
                else:
                    logger.debug(f"Skipping special entry '{entry.path}'")

            seen = result.directories + result.files_submitted
            if seen >= next_report:
                logger.info(f"Mirrored {seen} items so far")
                if progress:
                    progress(seen)
                next_report += progress_interval

    result.elapsed = time.monotonic() - start
    result.links_created = pool.succeeded
    result.links_failed = pool.failed
    for outcome in pool.failures:
        if isinstance(outcome.error, LinkFailure):
            result.link_failures.append(outcome.error)
        else:
            result.link_failures.append(LinkFailure(outcome.task.source, outcome.task.destination, outcome.error))

    logger.info(
        f"Mirror complete: {result.directories} dirs, {result.files_submitted} links submitted, "
        f"{result.links_created} created, {result.links_failed} failed, {result.skipped} skipped "
        f"in {result.elapsed:.3f}s"
    )
    return result


def _read_source_dir(path: str, result: MirrorResult) -> List[os.DirEntry]:
    """List a source directory. On error, keep whatever was read before it."""
    entries = []
    try:
        with os.scandir(path) as it:
            for entry in it:
                entries.append(entry)
    except OSError as e:
        _record_traversal_error(result, path, e)
    return entries


def _record_traversal_error(result: MirrorResult, path: str, cause: OSError) -> None:
    error = TraversalError(path, cause)
    logger.error(str(error))
    result.traversal_errors.append(error)
