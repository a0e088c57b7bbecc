"""
FUSE binding - Serves a GitViewFS through the kernel with fusepy.
"""

import errno
import itertools
import logging
import os
from threading import Lock
from typing import Dict, List, Optional, Union

from fuse import FUSE, FuseOSError, Operations

from .errors import FSError
from .fs import FileHandle, GitViewFS

logger = logging.getLogger(__name__)

_WRITE_FLAGS = os.O_WRONLY | os.O_RDWR | os.O_APPEND | os.O_CREAT | os.O_TRUNC


def _relative(path: str) -> str:
    """Strip the leading slash FUSE puts on every path."""
    return path.lstrip("/")


class GitViewOperations(Operations):
    """
    fusepy operations backed by a GitViewFS.

    Calls not defined here fall back to the fusepy defaults, which reject
    writes with EROFS and extended attributes with ENOTSUP.
    """

    def __init__(self, fs: GitViewFS, uid: Optional[int] = None, gid: Optional[int] = None):
        self.fs = fs
        self.uid = os.getuid() if uid is None else uid
        self.gid = os.getgid() if gid is None else gid
        self._handles: Dict[int, FileHandle] = {}
        self._handles_lock = Lock()
        self._next_fh = itertools.count(1)

    def __call__(self, op, *args):
        try:
            return super().__call__(op, *args)
        except FSError as e:
            raise FuseOSError(e.status) from e

    def getattr(self, path, fh=None):
        attrs = self.fs.get_attributes(_relative(path))
        return {
            "st_mode": attrs.mode,
            "st_nlink": attrs.nlink,
            "st_size": attrs.size,
            "st_mtime": attrs.mtime,
            "st_atime": attrs.mtime,
            "st_ctime": attrs.mtime,
            "st_uid": self.uid,
            "st_gid": self.gid,
        }

    def readdir(self, path, fh) -> List[Union[str, tuple]]:
        entries = self.fs.list_directory(_relative(path))
        return [".", ".."] + [(entry.name, {"st_mode": entry.mode}, 0) for entry in entries]

    def open(self, path, flags):
        if flags & _WRITE_FLAGS:
            raise FuseOSError(errno.EROFS)
        handle = self.fs.open_file(_relative(path))
        with self._handles_lock:
            fh = next(self._next_fh)
            self._handles[fh] = handle
        return fh

    def read(self, path, size, offset, fh):
        with self._handles_lock:
            handle = self._handles.get(fh)
        if handle is None:
            raise FuseOSError(errno.EBADF)
        return handle.read(size, offset)

    def release(self, path, fh):
        with self._handles_lock:
            handle = self._handles.pop(fh, None)
        if handle is not None:
            handle.close()
        return 0

    def readlink(self, path):
        return self.fs.read_symlink(_relative(path))

    def destroy(self, path):
        with self._handles_lock:
            handles = list(self._handles.values())
            self._handles.clear()
        for handle in handles:
            handle.close()
        self.fs.close()

    @property
    def open_handles(self) -> int:
        return len(self._handles)


def mount(fs: GitViewFS, mountpoint: str, foreground: bool = True, debug: bool = False) -> None:
    """
    Mount a projection and serve it until unmounted.

    Args:
        fs: Projection to serve.
        mountpoint: Existing empty directory.
        foreground: Stay attached to the terminal.
        debug: Enable FUSE request tracing.
    """
    logger.info("Mounting %s on %s", fs, mountpoint)
    FUSE(
        GitViewOperations(fs),
        mountpoint,
        foreground=foreground,
        nothreads=False,
        ro=True,
        fsname=str(fs),
        debug=debug,
    )
