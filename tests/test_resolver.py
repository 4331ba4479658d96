"""
Test the path resolver, directly on a temporary directory.
"""

import os

import pytest

from spaserve._resolver import (
    FileSystemError,
    LocalFileSystem,
    UnsafePathError,
    ServeFile,
    ServeFallback,
    NotFound,
    ResolveError,
    resolve,
    safe_join,
    split_path,
    is_hidden,
)

from common import make_site


@pytest.fixture
def site(tmp_path):
    return make_site(
        tmp_path / "site",
        {
            "index.html": "<html>index</html>",
            "about.html": "<html>about</html>",
            "app.js": "console.log('hi');",
            "img/logo.png": b"\x89PNG",
            "docs/guide.html": "<html>guide</html>",
            ".env": "SECRET=1",
            ".hidden/page.html": "<html>hidden</html>",
        },
    )


def test_root_serves_fallback(site):
    res = resolve("/", site, "index.html")
    assert res == ServeFile(os.path.join(site, "index.html"))


def test_root_without_fallback(tmp_path):
    root = make_site(tmp_path, {"app.js": "x"})
    res = resolve("/", root, "index.html")
    assert isinstance(res, NotFound)
    assert not res.rejected


def test_existing_files(site):
    for path in ("/about.html", "/app.js", "/img/logo.png", "/docs/guide.html"):
        res = resolve(path, site, "index.html")
        assert isinstance(res, ServeFile), path
        assert res.path == os.path.join(site, *path.split("/"))


def test_missing_html_does_not_fall_back(site):
    for path in ("/missing.html", "/docs/missing.html", "/img/logo.png.html"):
        res = resolve(path, site, "index.html")
        assert isinstance(res, NotFound), path


def test_html_directory_is_not_found(site):
    os.mkdir(os.path.join(site, "dir.html"))
    res = resolve("/dir.html", site, "index.html")
    assert isinstance(res, NotFound)
    assert "regular file" in res.detail


def test_client_routes_fall_back(site):
    for path in ("/about", "/dashboard/settings", "/img/missing.png", "/img", "/img/"):
        res = resolve(path, site, "index.html")
        assert res == ServeFallback(os.path.join(site, "index.html")), path


def test_no_fallback_document(tmp_path):
    root = make_site(tmp_path, {"app.js": "x"})
    assert isinstance(resolve("/about", root, "index.html"), NotFound)
    assert isinstance(resolve("/app.js", root, "index.html"), ServeFile)


def test_custom_fallback_name(tmp_path):
    root = make_site(tmp_path, {"app.html": "app", "index.html": "index"})
    assert resolve("/", root, "app.html") == ServeFile(os.path.join(root, "app.html"))
    res = resolve("/some/route", root, "app.html")
    assert res == ServeFallback(os.path.join(root, "app.html"))


def test_traversal_is_rejected(site, tmp_path):
    (tmp_path / "secret.txt").write_text("secret")

    for path in (
        "/../secret.txt",
        "/../../etc/passwd",
        "/img/../../secret.txt",
        "/..",
        "/..\\secret.txt",
        "/img\\..\\..\\secret.txt",
        "/index.html\x00.png",
        "/../site/index.html",
    ):
        res = resolve(path, site, "index.html")
        assert isinstance(res, NotFound), path
        assert res.rejected, path


def test_symlink_out_of_root_is_rejected(site, tmp_path):
    (tmp_path / "secret.txt").write_text("secret")
    os.symlink(str(tmp_path / "secret.txt"), os.path.join(site, "link.txt"))
    os.symlink(str(tmp_path), os.path.join(site, "up"))

    res = resolve("/link.txt", site, "index.html")
    assert isinstance(res, NotFound) and res.rejected
    res = resolve("/up/secret.txt", site, "index.html")
    assert isinstance(res, NotFound) and res.rejected


def test_fallback_symlink_out_of_root(tmp_path):
    (tmp_path / "outside.html").write_text("<html>outside</html>")
    root = make_site(tmp_path / "site", {"app.js": "x"})
    os.symlink(str(tmp_path / "outside.html"), os.path.join(root, "index.html"))

    for path in ("/", "/some/route", "/index.html"):
        res = resolve(path, root, "index.html")
        assert isinstance(res, NotFound), path

    # Files inside root are still served
    res = resolve("/app.js", root, "index.html")
    assert res == ServeFile(os.path.join(root, "app.js"))


def test_symlink_inside_root_is_served(site):
    os.symlink(os.path.join(site, "app.js"), os.path.join(site, "alias.js"))
    res = resolve("/alias.js", site, "index.html")
    assert res == ServeFile(os.path.join(site, "alias.js"))


def test_dot_segments_are_dropped(site):
    res = resolve("/./img//./logo.png", site, "index.html")
    assert res == ServeFile(os.path.join(site, "img", "logo.png"))


def test_dotfiles(site):
    # Hidden files are treated as absent
    res = resolve("/.env", site, "index.html")
    assert isinstance(res, ServeFallback)
    res = resolve("/.hidden/page.html", site, "index.html")
    assert isinstance(res, NotFound) and not res.rejected

    # Unless asked for
    res = resolve("/.env", site, "index.html", serve_dotfiles=True)
    assert res == ServeFile(os.path.join(site, ".env"))
    res = resolve("/.hidden/page.html", site, "index.html", serve_dotfiles=True)
    assert isinstance(res, ServeFile)


class FailingFileSystem:
    """ A filesystem query that fails for paths containing a given string.
    """

    def __init__(self, fail_on):
        self._fs = LocalFileSystem()
        self._fail_on = fail_on

    def exists(self, path):
        if self._fail_on in path:
            raise FileSystemError(f"I/O error on {path}")
        return self._fs.exists(path)

    def is_regular_file(self, path):
        if self._fail_on in path:
            raise FileSystemError(f"permission denied for {path}")
        return self._fs.is_regular_file(path)


def test_filesystem_errors_are_not_absence(site):
    fs = FailingFileSystem("app.js")
    res = resolve("/app.js", site, "index.html", fs)
    assert isinstance(res, ResolveError)
    assert "permission denied" in res.detail

    fs = FailingFileSystem("index.html")
    for path in ("/", "/some/route"):
        res = resolve(path, site, "index.html", fs)
        assert isinstance(res, ResolveError), path

    # Other paths are unaffected
    res = resolve("/about.html", site, "index.html", FailingFileSystem("nope"))
    assert isinstance(res, ServeFile)


def test_local_filesystem(site):
    fs = LocalFileSystem()
    assert fs.exists(site)
    assert not fs.is_regular_file(site)
    assert fs.exists(os.path.join(site, "app.js"))
    assert fs.is_regular_file(os.path.join(site, "app.js"))
    assert not fs.exists(os.path.join(site, "nope.js"))
    assert not fs.is_regular_file(os.path.join(site, "nope.js"))
    # A file used as a directory does not exist, rather than erroring
    assert not fs.exists(os.path.join(site, "app.js", "x"))
    assert not fs.is_regular_file(os.path.join(site, "app.js", "x"))


def test_long_names_are_absent(site):
    name = "a" * 300
    fs = LocalFileSystem()
    assert not fs.exists(os.path.join(site, name))
    assert not fs.is_regular_file(os.path.join(site, name, "x.js"))

    res = resolve("/" + name, site, "index.html")
    assert res == ServeFallback(os.path.join(site, "index.html"))
    res = resolve("/" + name + ".html", site, "index.html")
    assert isinstance(res, NotFound) and not res.rejected


def test_local_filesystem_error(monkeypatch):
    def fake_stat(path):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr(os, "stat", fake_stat)
    fs = LocalFileSystem()
    with pytest.raises(FileSystemError) as err:
        fs.exists("/whatever")
    assert "permission denied" in str(err.value).lower()


def test_split_path():
    assert split_path("/") == []
    assert split_path("/a/b/c.js") == ["a", "b", "c.js"]
    assert split_path("//a/./b/") == ["a", "b"]
    assert split_path("/a/..b/c..") == ["a", "..b", "c.."]

    for path in ("/a/../b", "/..", "\x00", "/a\\b"):
        with pytest.raises(UnsafePathError):
            split_path(path)


def test_safe_join(site):
    assert safe_join(site, "/a/b") == os.path.join(site, "a", "b")
    assert safe_join(site, "/") == site
    with pytest.raises(UnsafePathError):
        safe_join(site, "/../x")


def test_is_hidden():
    assert is_hidden("/.env")
    assert is_hidden("/a/.git/config")
    assert not is_hidden("/a/b.c")
    assert not is_hidden("/")
