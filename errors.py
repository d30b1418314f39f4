# -*- coding: utf-8 -*-

"""Exception types raised by the generator, the mirror and the worker pool."""

import os


class HardlinkerError(Exception):
    """Base class for every error raised by hardlinker."""


class AlreadyExistsError(HardlinkerError, FileExistsError):
    def __init__(self, path):
        self.path = os.fspath(path)
        super().__init__(f"Path {self.path} already exists")


class SourceNotADirectoryError(HardlinkerError, NotADirectoryError):
    def __init__(self, path):
        self.path = os.fspath(path)
        super().__init__(f"Path {self.path} is not a directory")


class NestedDestinationError(HardlinkerError, ValueError):
    def __init__(self, source, destination):
        self.source = os.fspath(source)
        self.destination = os.fspath(destination)
        super().__init__(f"Destination {self.destination} lies inside source {self.source}")


class PoolClosedError(HardlinkerError, RuntimeError):
    """Raised when a task is submitted to a pool that is no longer open."""


class TraversalError(HardlinkerError):
    """
    A source directory could not be enumerated, or its mirror could not be created.
    The subtree below `path` is abandoned; the rest of the run continues.
    """

    def __init__(self, path, cause: OSError):
        self.path = os.fspath(path)
        self.cause = cause
        super().__init__(f"Cannot traverse '{self.path}': {cause}")


class LinkFailure(HardlinkerError):
    """A single hard link could not be created. Never retried."""

    def __init__(self, source, destination, cause: OSError):
        self.source = os.fspath(source)
        self.destination = os.fspath(destination)
        self.cause = cause
        super().__init__(f"Failed to create hardlink '{self.source}' -> '{self.destination}': {cause}")
