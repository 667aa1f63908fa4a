"""
Source tree filesystem interface.

Defines the filesystem queries the path resolver needs (existence, symlink
check, glob expansion), with a local implementation rooted at the source tree
and an in-memory implementation for tests and dry runs. All paths are
relative to the source root and use "/" separators.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from pathlib import Path

from pathspec import PathSpec

GLOB_CHARS = ("*", "?", "[")


def is_glob(pattern: str) -> bool:
    """Whether pattern contains glob syntax."""
    return any(char in pattern for char in GLOB_CHARS)


def compile_globs(patterns: Iterable[str]) -> PathSpec:
    """Compile root-relative glob patterns into an anchored gitwildmatch spec.

    "*", "?" and "[...]" match within one path segment; a "**" segment matches
    zero or more directories. A pattern matching a directory also matches the
    files beneath it.
    """
    return PathSpec.from_lines("gitwildmatch", ["/" + pattern.lstrip("/") for pattern in patterns if pattern])


def match_glob(pattern: str, path: str) -> bool:
    """Match a root-relative file path against a glob pattern.

    Unlike an exclude, an include pattern that only matches one of the file's
    directories does not match the file, unless it ends in "**".
    """
    return _match_file(compile_globs([pattern]), pattern, path)


def _match_file(spec: PathSpec, pattern: str, path: str) -> bool:
    if not spec.match_file(path):
        return False
    if pattern.rstrip("/").endswith("**"):
        return True
    parts = path.split("/")
    return not any(spec.match_file("/".join(parts[:i])) for i in range(1, len(parts)))


def _static_prefix(pattern: str) -> str:
    parts: list[str] = []
    for part in pattern.split("/")[:-1]:
        if is_glob(part):
            break
        parts.append(part)
    return "/".join(parts)


class SourceFileSystem(ABC):
    """Abstract source tree filesystem."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Check whether a file or directory exists.

        Args:
            path: Root-relative path.

        Returns:
            True if path exists.
        """
        ...

    @abstractmethod
    def is_symlink(self, path: str) -> bool:
        """Check whether path is a symbolic link (without following it)."""
        ...

    @abstractmethod
    def list_files(self, directory: str) -> list[str]:
        """List all files beneath directory, recursively.

        Args:
            directory: Root-relative directory; "" for the root.

        Returns:
            Root-relative file paths.
        """
        ...

    @abstractmethod
    def read_text(self, path: str) -> str:
        """Read a file's contents."""
        ...

    def glob(self, pattern: str, excludes: Iterable[str] = ()) -> list[str]:
        """Expand a root-relative glob pattern into matching files.

        Args:
            pattern: Root-relative glob pattern.
            excludes: Root-relative paths or patterns to leave out.

        Returns:
            Sorted root-relative paths of matching files.
        """
        include_spec = compile_globs([pattern])
        exclude_spec = compile_globs(excludes)
        return sorted(
            path
            for path in self.list_files(_static_prefix(pattern))
            if _match_file(include_spec, pattern, path) and not exclude_spec.match_file(path)
        )


class LocalFileSystem(SourceFileSystem):
    """Filesystem rooted at a local source tree."""

    def __init__(self, root: Path) -> None:
        """Initialize the filesystem.

        Args:
            root: Root directory of the source tree
        """
        self.root = root.resolve()

    def _full_path(self, path: str) -> Path:
        return self.root / path if path not in ("", ".") else self.root

    def exists(self, path: str) -> bool:
        return self._full_path(path).exists()

    def is_symlink(self, path: str) -> bool:
        return self._full_path(path).is_symlink()

    def list_files(self, directory: str) -> list[str]:
        base = self._full_path(directory)
        if not base.is_dir():
            return []
        files: list[str] = []
        for dirpath, _dirnames, filenames in os.walk(base):
            rel_dir = Path(dirpath).relative_to(self.root).as_posix()
            for filename in filenames:
                files.append(filename if rel_dir == "." else f"{rel_dir}/{filename}")
        return files

    def read_text(self, path: str) -> str:
        return self._full_path(path).read_text(encoding="utf-8")


class InMemoryFileSystem(SourceFileSystem):
    """Filesystem backed by a mapping of root-relative paths to contents."""

    def __init__(self, files: Mapping[str, str] | None = None, symlinks: Iterable[str] = ()) -> None:
        self.files: dict[str, str] = dict(files or {})
        self.symlinks: set[str] = {link.rstrip("/") for link in symlinks}

    def add_file(self, path: str, contents: str = "") -> None:
        self.files[path] = contents

    def exists(self, path: str) -> bool:
        path = path.rstrip("/")
        if path in ("", "."):
            return True
        if path in self.files:
            return True
        return any(name.startswith(path + "/") for name in self.files)

    def is_symlink(self, path: str) -> bool:
        return path.rstrip("/") in self.symlinks

    def list_files(self, directory: str) -> list[str]:
        directory = directory.rstrip("/")
        if directory in ("", "."):
            return list(self.files)
        return [name for name in self.files if name.startswith(directory + "/")]

    def read_text(self, path: str) -> str:
        try:
            return self.files[path]
        except KeyError as e:
            raise FileNotFoundError(path) from e
