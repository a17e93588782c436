"""The page and response sent when no route matches a request."""

from __future__ import annotations

from . import log
from .httputil import Response
from .version import full

NOT_FOUND = """<!DOCTYPE html>
<html>
<head>
<title>Not Found</title>
<style>
    body {
        width: 35em;
        margin: 0 auto;
        font-family: Tahoma, Verdana, Arial, sans-serif;
    }
</style>
</head>
<body>
<h1>The page you requested was not found.</h1>
<p>Sorry, the page you are looking for is currently unavailable.<br/>
Please try again later.</p>
<p>The server is powered by frp.</p>
<p><em>Faithfully yours, frp.</em></p>
</body>
</html>
"""


def get_not_found_page_content(page_path: str = "") -> bytes:
    """Return the custom page at ``page_path``, or the built-in page.

    A custom page that cannot be read is logged and replaced by the built-in one.
    """
    if page_path:
        try:
            with open(page_path, "rb") as page:
                return page.read()
        except OSError as exc:
            log.warn("read custom 404 page error: %s", exc)
    return NOT_FOUND.encode("utf-8")


def not_found_response(page_path: str = "") -> Response:
    """Return a ``404 Not Found`` HTML response."""
    return Response(
        status_code=404,
        status="Not Found",
        headers={"Server": "frp/" + full(), "Content-Type": "text/html"},
        body=get_not_found_page_content(page_path),
    )