"""Shared fixtures: small in-memory git repositories."""

from typing import NamedTuple

import pytest
from dulwich.objects import Blob, Commit, Tag, Tree
from dulwich.repo import MemoryRepo

from gitviewfs.fs import GitViewFS
from gitviewfs.repository import Repository

REGULAR = 0o100644
EXECUTABLE = 0o100755
SYMLINK = 0o120000
GITLINK = 0o160000
DIRECTORY = 0o040000

COMMIT_TIME = 1700000000
MISSING_SHA = b"1" * 40


class RawEntry(NamedTuple):
    mode: int
    sha: bytes


def make_tree(repo, entries):
    """
    Store a tree built from a nested dict.

    Values are bytes (regular file), (mode, bytes) tuples, RawEntry for
    entries pointing at arbitrary ids, or dicts for subdirectories.
    """
    tree = Tree()
    for name, value in entries.items():
        if isinstance(value, dict):
            tree.add(name.encode(), DIRECTORY, make_tree(repo, value).id)
            continue
        if isinstance(value, RawEntry):
            tree.add(name.encode(), value.mode, value.sha)
            continue
        mode, data = value if isinstance(value, tuple) else (REGULAR, value)
        blob = Blob.from_string(data)
        repo.object_store.add_object(blob)
        tree.add(name.encode(), mode, blob.id)
    repo.object_store.add_object(tree)
    return tree


def make_commit(repo, tree, message=b"commit\n", parents=()):
    commit = Commit()
    commit.tree = getattr(tree, "id", tree)
    commit.parents = list(parents)
    commit.author = commit.committer = b"Test User <test@example.com>"
    commit.author_time = commit.commit_time = COMMIT_TIME
    commit.author_timezone = commit.commit_timezone = 0
    commit.encoding = b"UTF-8"
    commit.message = message
    repo.object_store.add_object(commit)
    return commit


def make_tag(repo, name, target):
    tag = Tag()
    tag.tagger = b"Test User <test@example.com>"
    tag.message = b"release\n"
    tag.name = name
    tag.tag_time = COMMIT_TIME
    tag.tag_timezone = 0
    tag.object = (type(target), target.id)
    repo.object_store.add_object(tag)
    return tag


SCENARIO = {
    "docs": {"readme.txt": b"Read me first.\n"},
    "run.sh": (EXECUTABLE, b"#!/bin/sh\necho hello\n"),
}

PROJECT = {
    "docs": {
        "readme.txt": b"Read me first.\n",
        "guide": {"intro.md": b"# Intro\n"},
    },
    "run.sh": (EXECUTABLE, b"#!/bin/sh\necho hello\n"),
    "latest": (SYMLINK, b"docs/readme.txt"),
    "vendor": RawEntry(GITLINK, b"2" * 40),
    "broken": RawEntry(DIRECTORY, MISSING_SHA),
    "lost.txt": RawEntry(REGULAR, MISSING_SHA),
}


@pytest.fixture
def memory_repo():
    """Repository with the PROJECT tree committed on master."""
    repo = MemoryRepo()
    tree = make_tree(repo, PROJECT)
    commit = make_commit(repo, tree)
    repo.refs[b"refs/heads/master"] = commit.id
    repo.refs.set_symbolic_ref(b"HEAD", b"refs/heads/master")
    return repo


@pytest.fixture
def scenario_repo():
    """Repository with a docs directory and an executable script."""
    repo = MemoryRepo()
    tree = make_tree(repo, SCENARIO)
    commit = make_commit(repo, tree)
    repo.refs[b"refs/heads/master"] = commit.id
    repo.refs.set_symbolic_ref(b"HEAD", b"refs/heads/master")
    return repo


@pytest.fixture
def repository(memory_repo):
    return Repository(memory_repo)


@pytest.fixture
def fs(repository):
    return GitViewFS(repository)


@pytest.fixture
def scenario_fs(scenario_repo):
    return GitViewFS(Repository(scenario_repo))
