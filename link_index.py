#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Hardlink indexing and mirror verification utilities for hardlinker."""

import os
import stat
from dataclasses import dataclass, field
from typing import Dict, List

from logger_utils import get_logger
from path_probe import EntryKind

logger = get_logger("hardlinker.index")


@dataclass(frozen=True)
class IndexEntry:
    rel_path: str
    kind: EntryKind
    dev: int
    inode: int
    nlink: int

    @property
    def is_hardlink(self) -> bool:
        # Directories always have nlink > 1 from "." and ".." entries
        return self.kind is EntryKind.FILE and self.nlink > 1


@dataclass
class VerifyReport:
    source_root: str
    dest_root: str
    directories: int = 0
    files: int = 0
    missing: List[str] = field(default_factory=list)
    extra: List[str] = field(default_factory=list)
    kind_mismatch: List[str] = field(default_factory=list)
    not_linked: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not (self.missing or self.extra or self.kind_mismatch or self.not_linked)


def _kind_of(mode: int) -> EntryKind:
    if stat.S_ISDIR(mode):
        return EntryKind.DIRECTORY
    if stat.S_ISREG(mode):
        return EntryKind.FILE
    return EntryKind.OTHER


def index_tree(base_path) -> Dict[str, IndexEntry]:
    """
    Recursively index every entry under base_path, without following symlinks.

    Args:
        base_path: The root directory to scan. The root itself is not included.

    Returns:
        Mapping of path relative to base_path -> IndexEntry.
    """
    base_path = os.fspath(base_path)
    entries = {}
    for root, dirs, files in os.walk(base_path):
        # os.walk lists symlinks to directories under dirs but does not descend into them
        for name in dirs + files:
            full_path = os.path.join(root, name)
            try:
                st = os.lstat(full_path)
            except OSError as e:
                logger.warning(f"Cannot stat '{full_path}': {e}")
                continue  # Permission denied or other error
            rel_path = os.path.relpath(full_path, base_path)
            entries[rel_path] = IndexEntry(
                rel_path=rel_path,
                kind=_kind_of(st.st_mode),
                dev=st.st_dev,
                inode=st.st_ino,
                nlink=st.st_nlink,
            )
    return entries


def verify_mirror(source_root, dest_root) -> VerifyReport:
    """
    Check that dest_root mirrors source_root: same directories, and every regular
    file in the source present in the destination as a hard link to the same inode.
    Symlinks and special files in the source are ignored, as the mirror skips them.
    """
    source_root = os.fspath(source_root)
    dest_root = os.fspath(dest_root)
    report = VerifyReport(source_root=source_root, dest_root=dest_root)
    source = {k: v for k, v in index_tree(source_root).items() if v.kind is not EntryKind.OTHER}
    dest = index_tree(dest_root)

    for rel_path, src_entry in sorted(source.items()):
        dst_entry = dest.get(rel_path)
        if dst_entry is None:
            report.missing.append(rel_path)
            continue
        if dst_entry.kind is not src_entry.kind:
            report.kind_mismatch.append(rel_path)
            continue
        if src_entry.kind is EntryKind.DIRECTORY:
            report.directories += 1
        else:
            report.files += 1
            if (dst_entry.dev, dst_entry.inode) != (src_entry.dev, src_entry.inode):
                report.not_linked.append(rel_path)

    report.extra = sorted(set(dest) - set(source))
    logger.info(
        f"Verified '{dest_root}' against '{source_root}': {report.directories} dirs, {report.files} files, "
        f"missing={len(report.missing)}, extra={len(report.extra)}, "
        f"kind_mismatch={len(report.kind_mismatch)}, not_linked={len(report.not_linked)}"
    )
    return report
