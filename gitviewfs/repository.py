"""
Repository - Lazy projection of a git object graph onto the tree model.
"""

import io
import logging
import os
import stat
import zlib
from threading import Lock
from typing import Any, BinaryIO, Dict, List, Optional, Tuple, Union

from dulwich.errors import (
    ChecksumMismatch,
    NotGitRepository,
    ObjectFormatException,
    RefFormatError,
    WrongObjectException,
)
from dulwich.objects import Blob, Commit, ShaFile, Tag, Tree
from dulwich.objectspec import AmbiguousShortId, parse_commit, parse_tree
from dulwich.repo import BaseRepo, Repo

from .cache import ObjectCache
from .errors import FSError, RevisionNotFoundError
from .file_node import DirectoryNode, FileMode, FileNode, Node

logger = logging.getLogger(__name__)

# Failures dulwich raises for missing, truncated or corrupt objects.
_READ_ERRORS = (
    KeyError,
    OSError,
    ValueError,
    zlib.error,
    ChecksumMismatch,
    ObjectFormatException,
)

# Failures dulwich raises for revisions that name nothing usable.
_RESOLVE_ERRORS = _READ_ERRORS + (RefFormatError, WrongObjectException, AmbiguousShortId)

TreeEntry = Tuple[bytes, int, bytes]


class Repository:
    """
    Read-only handle on a git repository, shared by all nodes of a session.

    Raw object reads are serialized behind a single lock because dulwich pack
    readers share file handles. Decoded trees and blob sizes are memoized
    per session.
    """

    def __init__(
        self,
        repo: Union[str, "os.PathLike[str]", BaseRepo],
        cache_enabled: bool = True,
        cache_size: int = 1024,
    ):
        """
        Initialize Repository.

        Args:
            repo: Path of a repository, or an already opened dulwich repository.
            cache_enabled: Memoize decoded trees and blob sizes for this session.
            cache_size: Maximum number of memoized entries.

        Raises:
            RevisionNotFoundError: If the path is not a git repository.
        """
        if isinstance(repo, BaseRepo):
            self._repo = repo
            self._owns_repo = False
        else:
            try:
                self._repo = Repo(os.fspath(repo))
            except NotGitRepository as e:
                raise RevisionNotFoundError(f"Not a git repository: {repo}") from e
            self._owns_repo = True
        self._lock = Lock()
        self._cache = ObjectCache(enabled=cache_enabled, max_size=cache_size)

    @property
    def location(self) -> str:
        """Where the repository lives, for display."""
        return getattr(self._repo, "path", None) or "<memory>"

    @property
    def cache(self) -> ObjectCache:
        return self._cache

    def close(self) -> None:
        """End the session: drop memoized objects and release the repository."""
        self._cache.clear()
        if self._owns_repo:
            self._repo.close()

    def __enter__(self) -> "Repository":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __str__(self) -> str:
        return self.location

    def get_object(self, sha: bytes) -> ShaFile:
        """
        Read and decode one object.

        Raises:
            FSError: Unexpected error if the object is missing or corrupt.
        """
        cached = self._cache.get(sha)
        if cached is not None:
            return cached

        try:
            with self._lock:
                obj = self._repo.object_store[sha]
        except _READ_ERRORS as e:
            raise FSError.unexpected(e) from e

        if isinstance(obj, Tree):
            self._cache.set(sha, obj)
        return obj

    def tree_entries(self, tree_id: bytes) -> List[TreeEntry]:
        """
        List the direct entries of a tree.

        Returns:
            List of (name, mode, sha) tuples.

        Raises:
            FSError: Unexpected error if the tree cannot be read.
        """
        obj = self.get_object(tree_id)
        if not isinstance(obj, Tree):
            raise FSError.unexpected(
                TypeError(f"{tree_id.decode('ascii')} is a {obj.type_name.decode('ascii')}, not a tree")
            )
        try:
            return [(entry.path, entry.mode, entry.sha) for entry in obj.iteritems()]
        except _READ_ERRORS as e:
            raise FSError.unexpected(e) from e

    def _get_blob(self, sha: bytes) -> Blob:
        obj = self.get_object(sha)
        if not isinstance(obj, Blob):
            raise FSError.unexpected(
                TypeError(f"{sha.decode('ascii')} is a {obj.type_name.decode('ascii')}, not a blob")
            )
        return obj

    def open_blob(self, sha: bytes) -> BinaryIO:
        """Open a new stream over a blob's content."""
        blob = self._get_blob(sha)
        try:
            return io.BytesIO(blob.data)
        except _READ_ERRORS as e:
            raise FSError.unexpected(e) from e

    def blob_size(self, sha: bytes) -> int:
        """Content length of a blob in bytes, memoized per session."""
        key = b"size:" + sha
        size = self._cache.get(key)
        if size is None:
            size = self._get_blob(sha).raw_length()
            self._cache.set(key, size)
        return size

    def peel_to_tree(self, sha: bytes) -> Tuple[bytes, Optional[int]]:
        """
        Follow tags and commits down to a tree.

        Returns:
            Tuple of (tree id, commit time). Commit time is None when no
            commit was traversed.

        Raises:
            FSError: Unexpected error if an object is unreadable or the chain
                does not end at a tree.
        """
        obj = self.get_object(sha)
        commit_time = None
        while isinstance(obj, Tag):
            obj = self.get_object(obj.object[1])
        if isinstance(obj, Commit):
            commit_time = obj.commit_time
            obj = self.get_object(obj.tree)
        if not isinstance(obj, Tree):
            raise FSError.unexpected(
                TypeError(f"{sha.decode('ascii')} does not name a tree")
            )
        return obj.id, commit_time

    def resolve_tree(self, spec: Union[str, bytes]) -> Tuple[bytes, Optional[int]]:
        """
        Resolve a revision specifier to a tree.

        Args:
            spec: Ref name (``HEAD``, ``main``, ``refs/tags/v1``), full hex id
                of a commit, tag or tree, or abbreviated commit id.

        Returns:
            Tuple of (tree id, commit time).

        Raises:
            RevisionNotFoundError: If the specifier does not resolve to a tree.
        """
        if isinstance(spec, str):
            spec = spec.encode("utf-8")

        sha = self._resolve_sha(spec)
        try:
            return self.peel_to_tree(sha)
        except FSError as e:
            raise RevisionNotFoundError(
                f"Cannot resolve {spec.decode('utf-8', 'replace')} to a tree: {e}"
            ) from e

    def _resolve_sha(self, spec: bytes) -> bytes:
        with self._lock:
            try:
                return parse_commit(self._repo, spec).id
            except _RESOLVE_ERRORS:
                pass
            # parse_tree asserts when the object is not a tree
            try:
                return parse_tree(self._repo, spec).id
            except _RESOLVE_ERRORS + (AssertionError,) as e:
                raise RevisionNotFoundError(
                    f"Unknown revision: {spec.decode('utf-8', 'replace')}"
                ) from e

    def refs_snapshot(self) -> Dict[bytes, bytes]:
        """
        Capture the current ref table.

        Returns:
            Mapping of ``HEAD`` and every ``refs/...`` name to the object id it
            points at. Dangling refs are left out.
        """
        with self._lock:
            refs = self._repo.refs.as_dict()
        return {
            name: sha
            for name, sha in refs.items()
            if name == b"HEAD" or name.startswith(b"refs/")
        }


class GitTree(DirectoryNode):
    """Directory node over one tree object."""

    def __init__(self, repository: Repository, tree_id: bytes):
        self.repository = repository
        self.tree_id = tree_id

    def children(self) -> Dict[str, Node]:
        result: Dict[str, Node] = {}
        for name, mode, sha in self.repository.tree_entries(self.tree_id):
            node = self._entry_node(mode, sha)
            if node is None:
                logger.debug(
                    "Dropping entry %r of tree %s with mode %o",
                    name, self.tree_id.decode("ascii"), mode,
                )
                continue
            result[os.fsdecode(name)] = node
        return result

    def _entry_node(self, mode: int, sha: bytes) -> Optional[Node]:
        if stat.S_ISDIR(mode):
            return GitTree(self.repository, sha)
        file_mode = FileMode.from_git(mode)
        if file_mode is FileMode.UNSUPPORTED:
            return None
        return GitFile(self.repository, sha, file_mode)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GitTree):
            return NotImplemented
        return self.repository is other.repository and self.tree_id == other.tree_id

    def __hash__(self) -> int:
        return hash(self.tree_id)

    def __repr__(self) -> str:
        return f"GitTree({self.tree_id.decode('ascii')})"


class GitFile(FileNode):
    """File node over one blob."""

    def __init__(self, repository: Repository, sha: bytes, mode: FileMode):
        self.repository = repository
        self.sha = sha
        self._mode = mode

    @property
    def mode(self) -> FileMode:
        return self._mode

    def open(self) -> BinaryIO:
        return self.repository.open_blob(self.sha)

    def size(self) -> int:
        return self.repository.blob_size(self.sha)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GitFile):
            return NotImplemented
        return (
            self.repository is other.repository
            and self.sha == other.sha
            and self._mode is other._mode
        )

    def __hash__(self) -> int:
        return hash((self.sha, self._mode))

    def __repr__(self) -> str:
        return f"GitFile({self.sha.decode('ascii')}, {self._mode.value})"


class RefsTree(DirectoryNode):
    """
    Directory node over a snapshot of the ref table.

    Ref names are split on ``/`` into nested directories with the leading
    ``refs/`` removed, so ``refs/heads/main`` appears as ``heads/main``. Each
    ref itself is the root tree of the revision it points at.
    """

    def __init__(self, repository: Repository, refs: Dict[bytes, bytes], prefix: bytes = b""):
        """
        Args:
            repository: Session repository.
            refs: Snapshot of ref names (without ``refs/``) to object ids.
            prefix: Path of this directory inside the snapshot, ending in ``/``
                unless it is the root.
        """
        self.repository = repository
        self.refs = refs
        self.prefix = prefix

    def children(self) -> Dict[str, Node]:
        leaves: Dict[bytes, bytes] = {}
        subdirs = set()
        for name, sha in self.refs.items():
            if not name.startswith(self.prefix):
                continue
            head, sep, _ = name[len(self.prefix):].partition(b"/")
            if sep:
                subdirs.add(head)
            else:
                leaves[head] = sha

        result: Dict[str, Node] = {}
        for head in subdirs:
            if head in leaves:
                logger.debug(
                    "Ref %r is also a ref directory, listing it as a ref",
                    (self.prefix + head).decode("utf-8", "replace"),
                )
                continue
            result[os.fsdecode(head)] = RefsTree(self.repository, self.refs, self.prefix + head + b"/")

        for head, sha in leaves.items():
            try:
                tree_id, _ = self.repository.peel_to_tree(sha)
            except FSError as e:
                logger.debug(
                    "Skipping ref %r: %s", (self.prefix + head).decode("utf-8", "replace"), e
                )
                continue
            result[os.fsdecode(head)] = GitTree(self.repository, tree_id)
        return result

    def __repr__(self) -> str:
        return f"RefsTree({self.prefix.decode('utf-8', 'replace') or '/'})"


def build_tree(repository: Repository, rev: Union[str, bytes] = "HEAD") -> Tuple[GitTree, Optional[int]]:
    """
    Build the root of a single-revision projection.

    Args:
        repository: Session repository.
        rev: Revision specifier of the root.

    Returns:
        Tuple of (root directory node, commit time of the root commit or None).

    Raises:
        RevisionNotFoundError: If the revision cannot be resolved.
    """
    tree_id, commit_time = repository.resolve_tree(rev)
    return GitTree(repository, tree_id), commit_time


def build_refs_tree(repository: Repository) -> RefsTree:
    """
    Build the root of a multi-ref projection over a snapshot of the ref table.

    Returns:
        Root directory with ``HEAD`` and one directory per ref namespace.
    """
    refs = {}
    for name, sha in repository.refs_snapshot().items():
        if name.startswith(b"refs/"):
            name = name[len(b"refs/"):]
        refs[name] = sha
    return RefsTree(repository, refs)
