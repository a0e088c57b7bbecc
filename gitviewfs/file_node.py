"""
FileNode and DirectoryNode - Tree model for the projected filesystem.

A node offers exactly one of two capabilities: a directory lists its named
children, a file exposes its mode and a fresh content stream. Consumers
discriminate with ``classify`` rather than by concrete class, so any backing
store can provide nodes.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import BinaryIO, Dict, Union


class FileMode(Enum):
    """Mode of a versioned file."""
    REGULAR = "regular"
    EXECUTABLE = "executable"
    SYMLINK = "symlink"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_git(cls, raw: int) -> "FileMode":
        """
        Translate a raw git tree entry mode.

        Args:
            raw: Mode as stored in the tree object (e.g. ``0o100644``).

        Returns:
            The matching FileMode, UNSUPPORTED for trees, gitlinks and
            anything else.
        """
        return _GIT_MODES.get(raw, cls.UNSUPPORTED)


_GIT_MODES = {
    0o100644: FileMode.REGULAR,
    # Group-writable blobs written by very old git versions.
    0o100664: FileMode.REGULAR,
    0o100755: FileMode.EXECUTABLE,
    0o120000: FileMode.SYMLINK,
}


class NodeKind(Enum):
    DIRECTORY = "directory"
    FILE = "file"
    UNSUPPORTED = "unsupported"


class DirectoryNode(ABC):
    """Directory capability: enumerate named children."""

    @abstractmethod
    def children(self) -> Dict[str, "Node"]:
        """
        List the direct children of this directory.

        Returns:
            Mapping of entry name to node. Order carries no meaning.

        Raises:
            FSError: If the directory cannot be enumerated.
        """


class FileNode(ABC):
    """File capability: mode, size and content of a versioned file."""

    @property
    @abstractmethod
    def mode(self) -> FileMode:
        """Mode of the file."""

    @abstractmethod
    def open(self) -> BinaryIO:
        """
        Open a new stream over the file content.

        The caller owns the stream and must close it.

        Raises:
            FSError: If the content cannot be read.
        """

    def size(self) -> int:
        """Content length in bytes."""
        with self.open() as stream:
            return len(stream.read())


Node = Union[DirectoryNode, FileNode]


def classify(node: object) -> NodeKind:
    """
    Tell which capability a node offers.

    Values offering neither capability are UNSUPPORTED; they are skipped by
    consumers, never treated as an error of the caller.
    """
    if isinstance(node, DirectoryNode):
        return NodeKind.DIRECTORY
    if isinstance(node, FileNode):
        return NodeKind.FILE
    return NodeKind.UNSUPPORTED
