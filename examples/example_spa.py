"""
Serve a small single-page application from a temporary directory.

Visit http://localhost:8080/some/client/route and notice that the
url stays as it is, while the entry document is served. The
about.html page is a real document, and /missing.html gives a 404.
"""

import os
import tempfile

import spaserve


INDEX = """<!DOCTYPE html>
<html>
<a href='/dashboard/settings'>a client route</a><br>
<a href='/about.html'>about</a><br>
<a href='/missing.html'>a broken link</a><br>
<script src='/app.js'></script>
</html>
"""

ABOUT = "<!DOCTYPE html><html>This is a static page, <a href='/'>back</a></html>"

APP = "document.body.append('Client route: ' + window.location.pathname);"


root = tempfile.mkdtemp()
for fname, text in [("index.html", INDEX), ("about.html", ABOUT), ("app.js", APP)]:
    with open(os.path.join(root, fname), "wb") as f:
        f.write(text.encode())

config = spaserve.ServerConfig.create(root, environment="development")
main = spaserve.to_asgi(spaserve.make_spa_handler(config), expose_errors=True)


if __name__ == "__main__":
    spaserve.run("__main__:main", "uvicorn", "localhost:8080", log_level="info")
