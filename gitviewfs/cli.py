"""
gitviewfs CLI - Mount or browse a git repository as a read-only filesystem.
"""

import argparse
import logging
import os
import stat
import sys
from typing import List

from .errors import FSError, GitViewError
from .fs import GitViewFS
from .repository import Repository


def get_fs(args) -> GitViewFS:
    """Open the repository and build the projection the arguments ask for."""
    repository = Repository(args.repo)
    try:
        return GitViewFS(repository, rev=args.rev, all_refs=args.all_refs, debug=args.debug)
    except GitViewError:
        repository.close()
        raise


def _path(args) -> str:
    return (args.path or "").strip("/")


def format_mode(mode: int) -> str:
    """Render an ``st_mode`` the way ``ls -l`` does."""
    return stat.filemode(mode)


def render_tree(fs: GitViewFS, path: str = "") -> str:
    """
    Generate ASCII tree representation of a directory.

    Returns:
        String representation of the tree.
    """
    lines = [path or "."]

    def _render(dirpath: str, prefix: str) -> None:
        entries = sorted(
            fs.list_directory(dirpath),
            key=lambda e: (not stat.S_ISDIR(e.mode), e.name.lower()),
        )
        for i, entry in enumerate(entries):
            is_last = i == len(entries) - 1
            connector = "└── " if is_last else "├── "
            child = f"{dirpath}/{entry.name}" if dirpath else entry.name
            if stat.S_ISDIR(entry.mode):
                lines.append(f"{prefix}{connector}{entry.name}/")
                _render(child, prefix + ("    " if is_last else "│   "))
            elif stat.S_ISLNK(entry.mode):
                lines.append(f"{prefix}{connector}{entry.name} -> {fs.read_symlink(child)}")
            else:
                lines.append(f"{prefix}{connector}{entry.name}")

    _render(path, "")
    return "\n".join(lines)


def cmd_mount(args):
    """Mount the repository."""
    # fusepy loads libfuse on import
    from .mount import mount

    with get_fs(args) as fs:
        mount(fs, args.mountpoint, foreground=not args.background, debug=args.debug)


def cmd_ls(args):
    """List directory contents."""
    with get_fs(args) as fs:
        entries = fs.list_directory(_path(args))
    for entry in sorted(entries, key=lambda e: e.name):
        if args.long:
            print(f"{format_mode(entry.mode)} {entry.name}")
        else:
            print(entry.name)


def cmd_cat(args):
    """Write file contents to stdout."""
    with get_fs(args) as fs, fs.open_file(_path(args)) as handle:
        offset = 0
        while True:
            chunk = handle.read(65536, offset)
            if not chunk:
                break
            sys.stdout.buffer.write(chunk)
            offset += len(chunk)
    sys.stdout.buffer.flush()


def cmd_tree(args):
    """Display directory tree."""
    with get_fs(args) as fs:
        print(render_tree(fs, _path(args)))


def cmd_stat(args):
    """Display attributes of a path."""
    with get_fs(args) as fs:
        attrs = fs.get_attributes(_path(args))
    print(f"Path: {_path(args) or '/'}")
    print(f"Mode: {format_mode(attrs.mode)} ({attrs.mode:o})")
    print(f"Size: {attrs.size}")
    print(f"Links: {attrs.nlink}")
    print(f"Modified: {attrs.mtime}")


def cmd_readlink(args):
    """Print the target of a symbolic link."""
    with get_fs(args) as fs:
        print(fs.read_symlink(_path(args)))


def _add_source_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--debug",
        "-d",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Log diagnostics to stderr",
    )
    parser.add_argument(
        "--repo",
        "-C",
        default=os.environ.get("GITVIEWFS_REPO", "."),
        help="Repository path (or set GITVIEWFS_REPO env var)",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--rev", "-r", default="HEAD", help="Revision to project (default: HEAD)")
    source.add_argument(
        "--all-refs",
        action="store_true",
        help="Project every ref as a top-level directory",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitviewfs",
        description="gitviewfs - Read-only filesystem view of a git repository",
    )
    parser.add_argument("--debug", "-d", action="store_true", help="Log diagnostics to stderr")
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version="%(prog)s 0.1.0",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # mount command
    mount_parser = subparsers.add_parser("mount", help="Mount the repository with FUSE")
    mount_parser.add_argument("mountpoint", help="Directory to mount on")
    _add_source_args(mount_parser)
    mount_parser.add_argument("--background", "-b", action="store_true", help="Detach after mounting")
    mount_parser.set_defaults(func=cmd_mount)

    # ls command
    ls_parser = subparsers.add_parser("ls", help="List directory contents")
    _add_source_args(ls_parser)
    ls_parser.add_argument("path", nargs="?", help="Path to list")
    ls_parser.add_argument("--long", "-l", action="store_true", help="Show modes")
    ls_parser.set_defaults(func=cmd_ls)

    # cat command
    cat_parser = subparsers.add_parser("cat", help="Display file contents")
    _add_source_args(cat_parser)
    cat_parser.add_argument("path", help="File path")
    cat_parser.set_defaults(func=cmd_cat)

    # tree command
    tree_parser = subparsers.add_parser("tree", help="Display directory tree")
    _add_source_args(tree_parser)
    tree_parser.add_argument("path", nargs="?", help="Root path")
    tree_parser.set_defaults(func=cmd_tree)

    # stat command
    stat_parser = subparsers.add_parser("stat", help="Display path attributes")
    _add_source_args(stat_parser)
    stat_parser.add_argument("path", nargs="?", help="Path to inspect")
    stat_parser.set_defaults(func=cmd_stat)

    # readlink command
    readlink_parser = subparsers.add_parser("readlink", help="Print a symlink target")
    _add_source_args(readlink_parser)
    readlink_parser.add_argument("path", help="Symlink path")
    readlink_parser.set_defaults(func=cmd_readlink)

    return parser


def main(argv: List[str] = None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        args.func(args)
    except FSError as e:
        path = getattr(args, "path", None) or "/"
        print(f"Error: {path}: {os.strerror(e.status)}", file=sys.stderr)
        sys.exit(1)
    except GitViewError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
