#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Inspector TUI using Textual: browse a mirrored tree next to its source.

Each row shows the entry type, inode and link count of the mirrored entry, and
whether a file shares its inode with the counterpart under the source root.
Navigation never leaves the destination root.
"""

import os
import pathlib
from typing import List, Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.widgets import DataTable, Footer, Header

from config import INSPECTOR_KEYBINDS
from logger_utils import get_logger

logger = get_logger("hardlinker.inspector")


class MirrorInspector(App):
    CSS_PATH = None
    BINDINGS = INSPECTOR_KEYBINDS
    TITLE = "hardlinker inspect"

    def __init__(self, source_root, dest_root, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.source_root = pathlib.Path(source_root).resolve()
        self.dest_root = pathlib.Path(dest_root).resolve()
        self.current_dir = self.dest_root
        self.items: List[pathlib.Path] = []

    def compose(self) -> ComposeResult:
        yield Header()
        yield DataTable(id="entries", cursor_type="row")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.add_columns("Name", "Type", "Inode", "Links", "Linked")
        self.load_directory(self.dest_root)
        table.focus()

    def _source_counterpart(self, entry: pathlib.Path) -> pathlib.Path:
        return self.source_root / entry.relative_to(self.dest_root)

    def _linked_marker(self, entry: pathlib.Path, st: os.stat_result) -> str:
        try:
            src_st = self._source_counterpart(entry).lstat()
        except OSError:
            return "[red]missing[/red]"
        if (src_st.st_dev, src_st.st_ino) == (st.st_dev, st.st_ino):
            return "[green]✓[/green]"
        return "[red]✗[/red]"

    def load_directory(self, path: pathlib.Path, preserve_cursor_index: Optional[int] = None) -> None:
        """Loads directory contents into the DataTable, optionally preserving cursor position."""
        self.current_dir = path
        logger.debug(f"[load_directory] Loading directory: {self.current_dir}")
        try:
            entries = list(self.current_dir.iterdir())
            entries.sort(key=lambda p: (not p.is_dir(), p.name.lower()))
        except OSError as e:
            logger.error(f"Error listing directory {self.current_dir}: {e}")
            entries = []
        self.items = entries

        table = self.query_one(DataTable)
        table.clear()
        for entry in entries:
            try:
                st = entry.lstat()
            except OSError as e:
                logger.error(f"ERROR processing entry {entry.name}: {e}")
                table.add_row(Text(entry.name), "?", "", "", "")
                continue
            name_text = Text(entry.name)
            if entry.is_dir() and not entry.is_symlink():
                name_text.stylize("bold blue")
                table.add_row(name_text, "Dir", str(st.st_ino), str(st.st_nlink), "")
            elif entry.is_file() and not entry.is_symlink():
                if st.st_nlink > 1:
                    name_text.stylize("magenta")
                table.add_row(
                    name_text,
                    "Hardlink" if st.st_nlink > 1 else "File",
                    str(st.st_ino),
                    str(st.st_nlink),
                    self._linked_marker(entry, st),
                )
            else:
                table.add_row(name_text, "Other", str(st.st_ino), str(st.st_nlink), "")

        if preserve_cursor_index is not None and 0 <= preserve_cursor_index < len(entries):
            table.move_cursor(row=preserve_cursor_index)
        self.sub_title = str(self.current_dir)

    def action_move_up(self) -> None:
        table = self.query_one(DataTable)
        if table.cursor_row > 0:
            table.move_cursor(row=table.cursor_row - 1)

    def action_move_down(self) -> None:
        table = self.query_one(DataTable)
        if table.cursor_row < len(self.items) - 1:
            table.move_cursor(row=table.cursor_row + 1)

    def action_go_up(self) -> None:
        if self.current_dir == self.dest_root:
            self.bell()
            return
        child = self.current_dir
        self.load_directory(self.current_dir.parent)
        if child in self.items:
            self.query_one(DataTable).move_cursor(row=self.items.index(child))

    def action_enter_dir(self) -> None:
        if not self.items:
            logger.debug("[enter_dir] No items to enter.")
            return
        entry = self.items[self.query_one(DataTable).cursor_row]
        if entry.is_dir() and not entry.is_symlink():
            self.load_directory(entry, preserve_cursor_index=0)
        else:
            self.bell()

    def on_unmount(self) -> None:
        logger.info("Inspector session ended.")
