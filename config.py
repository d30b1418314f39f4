# -*- coding: utf-8 -*-
"""
Central configuration for hardlinker.
Contains tree-shape constants, pool defaults, policies, and keybinds.
"""

import getpass

# Balanced tree shape: every directory holds up to this many files and subdirectories
BRANCHING_FACTOR = 64
SUBDIR_PREFIX = "dir"
FILE_PREFIX = "file"

# Worker pool defaults
DEFAULT_WORKER_COUNT = 12
DEFAULT_MAX_PENDING = 0  # 0 means an unbounded task queue

# Emit a progress signal every N items
PROGRESS_INTERVAL = 10_000

# How mirrored files are counted in the final summary
COUNT_ATTEMPTED = "attempted"
COUNT_CONFIRMED = "confirmed"
COUNTING_MODES = (COUNT_ATTEMPTED, COUNT_CONFIRMED)

# What to do with symlinks, devices, sockets and fifos found while mirroring
SPECIAL_SKIP = "skip"
SPECIAL_WARN = "warn"
SPECIAL_ENTRY_POLICIES = (SPECIAL_SKIP, SPECIAL_WARN)

# Keybinds for the inspector
INSPECTOR_KEYBINDS = [
    ("h", "go_up", "Go up dir"),
    ("j", "move_down", "Move down"),
    ("k", "move_up", "Move up"),
    ("l", "enter_dir", "Enter dir"),
    ("q", "quit", "Quit"),
]

# Log file path (should match logger_utils.py)
LOG_PATH = f"/tmp/hardlinker_{getpass.getuser()}.log"
