"""Tests for the fusepy binding."""

import errno
import os
import stat

import pytest

try:
    from fuse import FuseOSError
    from gitviewfs.mount import GitViewOperations
except (ImportError, OSError):
    pytest.skip("fusepy or libfuse is not available", allow_module_level=True)


@pytest.fixture
def ops(fs):
    return GitViewOperations(fs, uid=1000, gid=1000)


class TestGitViewOperations:
    """Test cases for the FUSE operations table."""

    def test_getattr_directory(self, ops):
        """Test stat of the mount root."""
        attrs = ops("getattr", "/")

        assert stat.S_ISDIR(attrs["st_mode"])
        assert attrs["st_uid"] == 1000
        assert attrs["st_gid"] == 1000

    def test_getattr_file(self, ops):
        """Test stat of a file."""
        attrs = ops("getattr", "/run.sh")

        assert attrs["st_mode"] == stat.S_IFREG | 0o555
        assert attrs["st_size"] == len(b"#!/bin/sh\necho hello\n")

    def test_getattr_missing(self, ops):
        """Test that adapter errors become FUSE errors."""
        with pytest.raises(FuseOSError) as excinfo:
            ops("getattr", "/nope")
        assert excinfo.value.errno == errno.ENOENT

    def test_getattr_unreadable(self, ops):
        """Test that unexpected errors become EIO."""
        with pytest.raises(FuseOSError) as excinfo:
            ops("getattr", "/lost.txt")
        assert excinfo.value.errno == errno.EIO

    def test_readdir(self, ops):
        """Test directory entries."""
        entries = ops("readdir", "/docs", 0)

        assert entries[:2] == [".", ".."]
        names = {name: attrs["st_mode"] for name, attrs, _ in entries[2:]}
        assert names == {"guide": stat.S_IFDIR | 0o555, "readme.txt": stat.S_IFREG | 0o444}

    def test_readdir_file(self, ops):
        """Test listing a file."""
        with pytest.raises(FuseOSError) as excinfo:
            ops("readdir", "/run.sh", 0)
        assert excinfo.value.errno == errno.ENOTDIR

    def test_open_read_release(self, ops):
        """Test the lifecycle of a file handle."""
        fh = ops("open", "/docs/readme.txt", os.O_RDONLY)

        assert ops("read", "/docs/readme.txt", 4, 0, fh) == b"Read"
        assert ops.open_handles == 1

        ops("release", "/docs/readme.txt", fh)
        assert ops.open_handles == 0

    def test_open_for_writing(self, ops):
        """Test that write access is refused."""
        with pytest.raises(FuseOSError) as excinfo:
            ops("open", "/docs/readme.txt", os.O_RDWR)
        assert excinfo.value.errno == errno.EROFS
        assert ops.open_handles == 0

    def test_open_directory(self, ops):
        """Test that directories cannot be opened as files."""
        with pytest.raises(FuseOSError) as excinfo:
            ops("open", "/docs", os.O_RDONLY)
        assert excinfo.value.errno == errno.EINVAL

    def test_read_unknown_handle(self, ops):
        """Test reading through a released handle."""
        with pytest.raises(FuseOSError) as excinfo:
            ops("read", "/run.sh", 10, 0, 42)
        assert excinfo.value.errno == errno.EBADF

    def test_readlink(self, ops):
        """Test reading a symlink."""
        assert ops("readlink", "/latest") == "docs/readme.txt"

    def test_write_calls_are_refused(self, ops):
        """Test that mutating calls fail as read-only."""
        with pytest.raises(FuseOSError) as excinfo:
            ops("mkdir", "/new", 0o755)
        assert excinfo.value.errno == errno.EROFS

    def test_destroy_closes_handles(self, ops):
        """Test that unmounting releases open files."""
        ops("open", "/run.sh", os.O_RDONLY)

        ops("destroy", "/")

        assert ops.open_handles == 0
