"""
Example that serves an API next to a single-page application. The main
handler delegates to the SPA handler for anything that is not an api call.
"""

import spaserve


config = spaserve.ServerConfig.from_env()
spa_handler = spaserve.make_spa_handler(config)

items = {"1": "apple", "2": "pear"}


async def api_handler(request):
    key = request.path[len("/api/items/") :]
    if not key:
        return items
    elif key in items:
        return {"id": key, "name": items[key]}
    else:
        return 404, {}, {"error": "No such item"}


@spaserve.to_asgi
async def main(request):
    if request.path.startswith("/api/items/"):
        return await api_handler(request)
    else:
        return await spa_handler(request)


if __name__ == "__main__":
    spaserve.run("__main__:main", "uvicorn", "localhost:8080")
