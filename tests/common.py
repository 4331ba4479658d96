"""
Common utilities used in our test scripts.
"""

import logging

from spaserve.testutils import MockTestServer


def filter_lines(lines):
    # Overloadable line filter
    skip = (
        "[INFO ",
        "[DEBUG ",
    )
    return [line for line in lines if line and not line.startswith(skip)]


def make_server(app):
    server = MockTestServer(app)
    server.filter_lines = filter_lines
    return server


class LogCapturer(logging.Handler):
    def __init__(self, level=logging.DEBUG):
        super().__init__(level)
        self.messages = []
        self.records = []

    def emit(self, record):
        self.messages.append(record.getMessage())
        self.records.append(record)

    def __enter__(self):
        logger = logging.getLogger("spaserve")
        self._ori_level = logger.level
        logger.setLevel(logging.DEBUG)
        logger.addHandler(self)
        return self

    def __exit__(self, *args, **kwargs):
        logger = logging.getLogger("spaserve")
        logger.removeHandler(self)
        logger.setLevel(self._ori_level)


def make_site(root, files):
    """ Create the given files (a dict mapping relative paths to str/bytes)
    below root. Returns root as a str.
    """
    for relpath, content in files.items():
        path = root / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode()
        path.write_bytes(content)
    return str(root)
