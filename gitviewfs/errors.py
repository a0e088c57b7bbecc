"""
Errors - Filesystem status errors and package exceptions.
"""

import errno
import os
from typing import Optional


class GitViewError(Exception):
    """Base class for gitviewfs errors."""


class RevisionNotFoundError(GitViewError):
    """The root revision of a projection could not be resolved."""


class FSError(GitViewError):
    """
    A failed filesystem operation.

    Carries the errno ``status`` reported to the caller and, for unexpected
    failures, the underlying ``cause`` so it can be recorded for diagnostics.
    """

    def __init__(self, status: int, cause: Optional[BaseException] = None):
        super().__init__(status, os.strerror(status))
        self.status = status
        self.cause = cause

    @classmethod
    def expected(cls, status: int) -> "FSError":
        """A normal outcome of probing the namespace (ENOENT, ENOTDIR, EINVAL)."""
        return cls(status)

    @classmethod
    def unexpected(cls, cause: BaseException) -> "FSError":
        """An internal failure, reported as EIO."""
        return cls(errno.EIO, cause)

    @property
    def is_unexpected(self) -> bool:
        return self.cause is not None

    def __str__(self) -> str:
        message = f"[Errno {self.status}] {os.strerror(self.status)}"
        if self.cause is not None:
            message += f": {self.cause!r}"
        return message
