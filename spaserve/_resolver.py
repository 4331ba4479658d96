"""
This module implements the path resolver: the rules that decide, for
a given request path, whether to serve a concrete file, the fallback
document, or nothing at all.

The resolver never raises for filesystem conditions. It returns one of
the outcome types defined here, so that the caller must handle each case.
"""

import os
import stat
import errno
from collections import namedtuple


ServeFile = namedtuple("ServeFile", ["path"])
ServeFallback = namedtuple("ServeFallback", ["path"])
NotFound = namedtuple("NotFound", ["detail", "rejected"], defaults=[False])
ResolveError = namedtuple("ResolveError", ["detail"])


class FileSystemError(OSError):
    """ An error raised by a filesystem query when it cannot tell whether
    a path exists (e.g. permission denied or an I/O error). Distinct from
    the path simply not existing.
    """


class UnsafePathError(ValueError):
    """ Raised by ``safe_join()`` when a request path would escape the root.
    """


class LocalFileSystem:
    """ Filesystem query capability backed by ``os.stat()``.
    """

    # These mean "it is not there", anything else is a real failure
    _ABSENT = (errno.ENOENT, errno.ENOTDIR, errno.ENAMETOOLONG)

    def _stat(self, path):
        try:
            return os.stat(path)
        except OSError as err:
            if err.errno in self._ABSENT:
                return None
            raise FileSystemError(f"Cannot stat {path}: {err.strerror or err}")

    def exists(self, path):
        return self._stat(path) is not None

    def is_regular_file(self, path):
        st = self._stat(path)
        if st is None or not stat.S_ISREG(st.st_mode):
            return False
        if not os.access(path, os.R_OK):
            raise FileSystemError(f"Cannot read {path}: permission denied")
        return True


def split_path(path):
    """ Split a request path into its non-trivial segments. Raises
    ``UnsafePathError`` for segments that could escape the root.
    """
    if "\x00" in path:
        raise UnsafePathError("null byte in path")
    if "\\" in path:
        raise UnsafePathError("backslash in path")
    segments = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        elif segment == "..":
            raise UnsafePathError("parent reference in path")
        segments.append(segment)
    return segments


def safe_join(root, path):
    """ Join the request path below root, making sure that the result
    (with symlinks resolved) stays inside root. Raises ``UnsafePathError``
    otherwise.
    """
    segments = split_path(path)
    target = os.path.join(root, *segments)
    real_root = os.path.realpath(root)
    real_target = os.path.realpath(target)
    if real_target != real_root and not real_target.startswith(
        real_root.rstrip(os.sep) + os.sep
    ):
        raise UnsafePathError("path resolves outside of root")
    return target


def is_hidden(path):
    """ Get whether any segment of the path is a dotfile / dotdir.
    """
    return any(segment.startswith(".") for segment in path.split("/") if segment)


def resolve(path, root, fallback, fs=None, *, serve_dotfiles=False):
    """ Resolve a (percent-decoded) request path to an outcome:

    * ``ServeFile(path)`` when the path is ``/`` and the fallback document
      exists, or when the path names an existing regular file.
    * ``NotFound(detail)`` for a ``.html`` path that does not exist. HTML
      documents never fall back, so that broken links stay visible.
    * ``ServeFallback(path)`` for any other missing path, if the fallback
      document exists.
    * ``NotFound(detail)`` when nothing can be served, or the path tries
      to escape the root.
    * ``ResolveError(detail)`` when the filesystem query fails.

    Hidden files are treated as absent unless ``serve_dotfiles`` is set.
    """
    if fs is None:
        fs = LocalFileSystem()
    try:
        return _resolve(path, root, fallback, fs, serve_dotfiles)
    except UnsafePathError as err:
        return NotFound(f"Rejected path {path!r}: {err}", rejected=True)
    except FileSystemError as err:
        return ResolveError(str(err))


def _fallback_path(root, fallback):
    # The fallback document itself may be a symlink pointing out of root
    try:
        return safe_join(root, fallback)
    except UnsafePathError:
        return None


def _resolve(path, root, fallback, fs, serve_dotfiles):
    fallback_path = _fallback_path(root, fallback)

    def has_fallback():
        return fallback_path is not None and fs.is_regular_file(fallback_path)

    if path == "/":
        if has_fallback():
            return ServeFile(fallback_path)
        return NotFound(f"Fallback document {fallback!r} does not exist")

    target = safe_join(root, path)
    visible = serve_dotfiles or not is_hidden(path)

    if path.endswith(".html"):
        if visible and fs.is_regular_file(target):
            return ServeFile(target)
        if visible and fs.exists(target):
            return NotFound(f"Not a regular file {path!r}")
        return NotFound(f"No such document {path!r}")

    if visible and fs.is_regular_file(target):
        return ServeFile(target)
    if has_fallback():
        return ServeFallback(fallback_path)
    return NotFound(f"No such file {path!r} and no fallback document")
