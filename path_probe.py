# -*- coding: utf-8 -*-

"""Stateless filesystem probes used to classify paths before and during a run."""

import enum
import os
import stat


class EntryKind(enum.Enum):
    DIRECTORY = "dir"
    FILE = "file"
    OTHER = "other"


def exists(path) -> bool:
    """True if anything occupies `path`, including a dangling symlink."""
    return os.path.lexists(path)


def is_dir(path) -> bool:
    return os.path.isdir(path)


def is_regular_file(path) -> bool:
    try:
        return stat.S_ISREG(os.lstat(path).st_mode)
    except OSError:
        return False


def classify_entry(entry: os.DirEntry) -> EntryKind:
    """
    Classify a scandir entry without following symlinks.

    A symlink, even one pointing at a directory or file, is OTHER.
    """
    try:
        if entry.is_dir(follow_symlinks=False):
            return EntryKind.DIRECTORY
        if entry.is_file(follow_symlinks=False):
            return EntryKind.FILE
    except OSError:
        pass
    return EntryKind.OTHER
