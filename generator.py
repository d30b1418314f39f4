#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Synthetic balanced directory trees used as benchmark inputs."""

import os
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional

import path_probe
from config import BRANCHING_FACTOR, FILE_PREFIX, PROGRESS_INTERVAL, SUBDIR_PREFIX
from errors import AlreadyExistsError
from logger_utils import get_logger

logger = get_logger("hardlinker.generator")


@dataclass
class GenerateResult:
    root: str
    files: int = 0
    directories: int = 0
    elapsed: float = 0.0

    @property
    def items_created(self) -> int:
        return self.files


def _subdirs_needed(remaining: int, queued: int) -> int:
    # Directories already queued will each absorb a full set of files.
    unplanned = remaining - queued * BRANCHING_FACTOR
    if unplanned <= 0:
        return 0
    return min(BRANCHING_FACTOR, -(-unplanned // BRANCHING_FACTOR))


def generate_tree(
    root,
    target_count: int,
    progress: Optional[Callable[[int, int], None]] = None,
    progress_interval: int = PROGRESS_INTERVAL,
) -> GenerateResult:
    """
    Build a balanced 64-ary tree of empty files under a fresh `root`.

    Directories are expanded breadth-first. Each one receives up to 64 files and
    only as many subdirectories as are still needed to hold the remaining files,
    so the shape depends on nothing but `target_count`.

    Args:
        root: Directory to create. Its parent must exist.
        target_count: Exact number of regular files to create.
        progress: Optional callback receiving (files_created, target_count).
        progress_interval: Files between progress callbacks.

    Returns:
        GenerateResult with file and directory totals.

    Raises:
        AlreadyExistsError: `root` already exists. Nothing is created.
        OSError: Any failure while building the tree. Partial trees are left in place.
    """
    root = os.fspath(root)
    if target_count < 0:
        raise ValueError(f"target_count must be non-negative, got {target_count}")
    if path_probe.exists(root):
        raise AlreadyExistsError(root)

    logger.info(f"Generating {target_count} files under '{root}'")
    start = time.monotonic()
    os.mkdir(root)
    result = GenerateResult(root=root, directories=1)
    pending = deque([root])
    next_report = progress_interval

    while pending and result.files < target_count:
        current = pending.popleft()
        remaining = target_count - result.files
        num_files = min(BRANCHING_FACTOR, remaining)

        for i in range(_subdirs_needed(remaining - num_files, len(pending))):
            subdir = os.path.join(current, f"{SUBDIR_PREFIX}{i}")
            os.mkdir(subdir)
            result.directories += 1
            pending.append(subdir)

        for i in range(num_files):
            # "x" mode fails if the name is somehow already taken
            with open(os.path.join(current, f"{FILE_PREFIX}{i}"), "x"):
                pass
            result.files += 1
            if result.files >= next_report:
                logger.info(f"Created {result.files}/{target_count} files")
                if progress:
                    progress(result.files, target_count)
                next_report += progress_interval

    result.elapsed = time.monotonic() - start
    logger.info(f"Created {result.files} files in {result.directories} directories under '{root}' in {result.elapsed:.3f}s")
    return result
