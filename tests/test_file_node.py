"""Tests for the tree model."""

import io

import pytest
from gitviewfs.file_node import DirectoryNode, FileMode, FileNode, NodeKind, classify


class StaticDirectory(DirectoryNode):
    def __init__(self, children):
        self._children = children

    def children(self):
        return dict(self._children)


class StaticFile(FileNode):
    def __init__(self, data, mode=FileMode.REGULAR):
        self.data = data
        self._mode = mode

    @property
    def mode(self):
        return self._mode

    def open(self):
        return io.BytesIO(self.data)


class TestFileMode:
    """Test cases for git mode translation."""

    @pytest.mark.parametrize("raw, expected", [
        (0o100644, FileMode.REGULAR),
        (0o100664, FileMode.REGULAR),
        (0o100755, FileMode.EXECUTABLE),
        (0o120000, FileMode.SYMLINK),
    ])
    def test_known_modes(self, raw, expected):
        """Test that blob modes map to file modes."""
        assert FileMode.from_git(raw) is expected

    @pytest.mark.parametrize("raw", [0o040000, 0o160000, 0o100600, 0])
    def test_unknown_modes(self, raw):
        """Test that trees, gitlinks and odd modes are unsupported."""
        assert FileMode.from_git(raw) is FileMode.UNSUPPORTED


class TestClassify:
    """Test cases for capability discrimination."""

    def test_directory(self):
        """Test classifying a directory node."""
        assert classify(StaticDirectory({})) is NodeKind.DIRECTORY

    def test_file(self):
        """Test classifying a file node."""
        assert classify(StaticFile(b"")) is NodeKind.FILE

    @pytest.mark.parametrize("value", [None, "file", object(), {"a": 1}])
    def test_unsupported(self, value):
        """Test that values without a capability are unsupported."""
        assert classify(value) is NodeKind.UNSUPPORTED


class TestFileNode:
    """Test cases for FileNode defaults."""

    def test_default_size_reads_content(self):
        """Test that size falls back to the content length."""
        assert StaticFile(b"hello").size() == 5

    def test_open_returns_fresh_stream(self):
        """Test that every open starts at the beginning."""
        node = StaticFile(b"abc")
        first = node.open()
        first.read()
        assert node.open().read() == b"abc"

    def test_abstract_nodes_cannot_be_created(self):
        """Test that the capabilities must be implemented."""
        with pytest.raises(TypeError):
            DirectoryNode()
        with pytest.raises(TypeError):
            FileNode()
