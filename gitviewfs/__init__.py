"""
gitviewfs - Read-only filesystem view of git repositories.
"""

from .errors import FSError, GitViewError, RevisionNotFoundError
from .file_node import FileMode, FileNode, DirectoryNode, NodeKind, classify
from .cache import ObjectCache
from .repository import Repository, GitTree, GitFile, RefsTree, build_tree, build_refs_tree
from .fs import GitViewFS, Attributes, DirEntry, FileHandle, fuse_file_mode

__version__ = "0.1.0"
__all__ = [
    "GitViewFS",
    "Repository",
    # Tree model
    "FileMode",
    "FileNode",
    "DirectoryNode",
    "NodeKind",
    "classify",
    # Git backing
    "GitTree",
    "GitFile",
    "RefsTree",
    "build_tree",
    "build_refs_tree",
    "ObjectCache",
    # Adapter results
    "Attributes",
    "DirEntry",
    "FileHandle",
    "fuse_file_mode",
    # Errors
    "FSError",
    "GitViewError",
    "RevisionNotFoundError",
]
