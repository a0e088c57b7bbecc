"""
GitViewFS - Read-only filesystem adapter over the tree model.
"""

import errno
import logging
import os
import stat
from dataclasses import dataclass
from threading import Lock
from typing import BinaryIO, Iterator, List, Optional, Tuple, Union

from .errors import FSError
from .file_node import FileMode, FileNode, Node, NodeKind, classify
from .repository import Repository, build_refs_tree, build_tree

DIR_MODE = stat.S_IFDIR | 0o555

_FILE_MODES = {
    FileMode.REGULAR: stat.S_IFREG | 0o444,
    FileMode.EXECUTABLE: stat.S_IFREG | 0o555,
    FileMode.SYMLINK: stat.S_IFLNK | 0o444,
}


def fuse_file_mode(mode: FileMode) -> Optional[int]:
    """
    Filesystem mode for a file mode.

    Returns:
        The ``st_mode`` value, or None if files of this mode are not exposed.
    """
    return _FILE_MODES.get(mode)


def _discard_logger() -> logging.Logger:
    # Kept out of the logging registry so no configured handler can reach it
    sink = logging.Logger("gitviewfs.discard")
    sink.addHandler(logging.NullHandler())
    sink.propagate = False
    sink.disabled = True
    return sink


@dataclass(frozen=True)
class Attributes:
    """Stat-like attributes of a projected path."""
    mode: int
    size: int = 0
    nlink: int = 1
    mtime: int = 0

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_symlink(self) -> bool:
        return stat.S_ISLNK(self.mode)


@dataclass(frozen=True)
class DirEntry:
    """One entry of a directory listing."""
    name: str
    mode: int


class FileHandle:
    """
    Positional reader over an opened file.

    Reads from several threads on the same handle are serialized.
    """

    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self._lock = Lock()

    def read(self, size: int, offset: int = 0) -> bytes:
        with self._lock:
            self._stream.seek(offset)
            return self._stream.read(size)

    def close(self) -> None:
        self._stream.close()

    @property
    def closed(self) -> bool:
        return self._stream.closed

    def __enter__(self) -> "FileHandle":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class GitViewFS:
    """
    Read-only filesystem view of a git repository.

    Paths are slash separated and relative to the projection root; the empty
    path is the root itself. Every call resolves its path afresh.

    Example:
        >>> fs = GitViewFS(Repository("."), rev="main")
        >>> [entry.name for entry in fs.list_directory("")]
    """

    def __init__(
        self,
        repository: Repository,
        rev: Union[str, bytes] = "HEAD",
        all_refs: bool = False,
        debug: bool = False,
        sink: Optional[logging.Logger] = None,
    ):
        """
        Initialize GitViewFS.

        Args:
            repository: Session repository.
            rev: Revision at the root of the projection.
            all_refs: Project every ref as a directory instead of one revision.
            debug: Route diagnostics to ``sink`` from the start.
            sink: Logger receiving diagnostics while debugging is on.

        Raises:
            RevisionNotFoundError: If the root cannot be resolved.
        """
        self.repository = repository
        self.all_refs = all_refs
        if all_refs:
            self.rev = None
            self.root: Node = build_refs_tree(repository)
            self.mtime = 0
        else:
            self.rev = rev.decode("utf-8") if isinstance(rev, bytes) else rev
            self.root, commit_time = build_tree(repository, rev)
            self.mtime = commit_time or 0
        self._sink = sink or logging.getLogger("gitviewfs.fs")
        self._discard = _discard_logger()
        self.logger = self._discard
        self.set_debug(debug)

    def __str__(self) -> str:
        return f"gitviewfs:{self.repository}@{'refs' if self.all_refs else self.rev}"

    def set_debug(self, debug: bool) -> None:
        """Send diagnostics to the sink, or discard them."""
        self.logger = self._sink if debug else self._discard

    def _report(self, error: FSError) -> FSError:
        if error.is_unexpected:
            self.logger.error("unexpected error: %s", error.cause, exc_info=error.cause)
        return error

    def resolve(self, path: str) -> Node:
        """
        Find the node at a path.

        Raises:
            FSError: ENOENT if a segment is missing or lies below a file, or the
                first unexpected error met on the way.
        """
        node = self.root
        if path == "":
            return node
        for part in path.split("/"):
            if classify(node) is not NodeKind.DIRECTORY:
                raise FSError.expected(errno.ENOENT)
            try:
                children = node.children()
            except FSError as e:
                raise self._report(e)
            if part not in children:
                raise FSError.expected(errno.ENOENT)
            node = children[part]
        return node

    def _node_mode(self, node: Node) -> Optional[int]:
        kind = classify(node)
        if kind is NodeKind.DIRECTORY:
            return DIR_MODE
        if kind is NodeKind.FILE:
            return fuse_file_mode(node.mode)
        return None

    def get_attributes(self, path: str) -> Attributes:
        """
        Stat a path.

        Raises:
            FSError: ENOENT for missing paths and unsupported nodes, EIO on
                unexpected failures.
        """
        node = self.resolve(path)
        kind = classify(node)
        if kind is NodeKind.DIRECTORY:
            return Attributes(mode=DIR_MODE, nlink=2, mtime=self.mtime)
        if kind is NodeKind.UNSUPPORTED:
            self.logger.debug("skipping node at %r: %r", path, node)
            raise FSError.expected(errno.ENOENT)

        mode = fuse_file_mode(node.mode)
        if mode is None:
            self.logger.debug("unsupported file mode %s at %r", node.mode.value, path)
            raise FSError.expected(errno.ENOENT)
        try:
            size = node.size()
        except FSError as e:
            raise self._report(e)
        return Attributes(mode=mode, size=size, nlink=1, mtime=self.mtime)

    def list_directory(self, path: str) -> List[DirEntry]:
        """
        List a directory.

        Children that cannot be represented are left out of the listing.

        Raises:
            FSError: ENOENT for missing paths, ENOTDIR for files, EIO on
                unexpected failures.
        """
        node = self.resolve(path)
        if classify(node) is not NodeKind.DIRECTORY:
            raise FSError.expected(errno.ENOTDIR)
        try:
            children = node.children()
        except FSError as e:
            raise self._report(e)

        entries = []
        for name, child in children.items():
            mode = self._node_mode(child)
            if mode is None:
                self.logger.debug("skipping child %r of %r: %r", name, path, child)
                continue
            entries.append(DirEntry(name=name, mode=mode))
        return entries

    def open_file(self, path: str) -> FileHandle:
        """
        Open a file for reading.

        Raises:
            FSError: EINVAL if the path is not a file, EIO if the content cannot
                be opened.
        """
        node = self.resolve(path)
        if classify(node) is not NodeKind.FILE:
            raise FSError.expected(errno.EINVAL)
        try:
            return FileHandle(node.open())
        except FSError as e:
            raise self._report(e)

    def read_symlink(self, path: str) -> str:
        """
        Read the target of a symbolic link.

        Raises:
            FSError: EINVAL unless the path is a symlink, EIO if its content
                cannot be read.
        """
        node = self.resolve(path)
        if classify(node) is not NodeKind.FILE:
            self.logger.debug("expected file node at: %s", path)
            raise FSError.expected(errno.EINVAL)
        if node.mode is not FileMode.SYMLINK:
            self.logger.debug("expected symlink at: %s", path)
            raise FSError.expected(errno.EINVAL)

        try:
            with node.open() as stream:
                target = stream.read()
        except FSError as e:
            raise self._report(e)
        except OSError as e:
            raise self._report(FSError.unexpected(e)) from e
        return os.fsdecode(target)

    def walk(self, path: str = "") -> Iterator[Tuple[str, List[str], List[str]]]:
        """
        Walk the directory tree top-down.

        Yields:
            Tuple of (dirpath, dirnames, filenames), names sorted.
        """
        entries = self.list_directory(path)
        dirnames = sorted(e.name for e in entries if stat.S_ISDIR(e.mode))
        filenames = sorted(e.name for e in entries if not stat.S_ISDIR(e.mode))
        yield path, dirnames, filenames

        for name in dirnames:
            yield from self.walk(f"{path}/{name}" if path else name)

    def close(self) -> None:
        """End the session."""
        self.repository.close()

    def __enter__(self) -> "GitViewFS":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
