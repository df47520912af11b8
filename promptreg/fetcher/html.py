"""Text extraction from HTML error pages.

Providers often answer credential or rate-limit problems with a branded
HTML page instead of JSON. The readable part of that page is the most
useful error detail available.
"""

import re

from bs4 import BeautifulSoup, Comment

MAX_PAGE_TEXT = 500

_WHITESPACE = re.compile(r"\s+")


def extract_page_text(document: str, limit: int = MAX_PAGE_TEXT) -> str:
    """Reduce an HTML document to its visible text.

    Scripts, styles and comments are dropped, whitespace collapsed, and
    the result truncated to `limit` characters.

    Examples:
        >>> extract_page_text("<body><h1>Rate  limit</h1><script>x()</script></body>")
        'Rate limit'
    """
    soup = BeautifulSoup(document, "html.parser")
    root = soup.body or soup
    for tag in root(["script", "style", "noscript"]):
        tag.decompose()
    for comment in root.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    text = _WHITESPACE.sub(" ", root.get_text(" ")).strip()
    if len(text) > limit:
        return text[:limit].rstrip() + "..."
    return text
