"""Fetch a reference page and reduce it to clean semantic HTML."""

from __future__ import annotations

import html
import logging

import requests
from bs4 import BeautifulSoup, Tag

REQUEST_TIMEOUT_SECONDS = 10
MIN_CONTENT_CHARS = 200

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

# First match wins; body is the last resort.
CONTENT_SELECTORS: tuple[str, ...] = (
    ".entry-content",
    ".elementor-widget-theme-post-content .elementor-widget-container",
    ".post-content",
    "article .content",
    "main article",
    ".blog-content",
    "article",
    "main",
    "body",
)

DENYLIST_SELECTORS: tuple[str, ...] = (
    "script",
    "style",
    "noscript",
    "nav",
    "header",
    "footer",
    "aside",
    "iframe",
    "ins",
    "svg",
    "form",
    ".sharedaddy",
    ".jp-relatedposts",
    ".social-share",
    ".share-buttons",
    ".elementor-share-buttons",
    ".elementor-widget-share-buttons",
    ".elementor-widget-social-icons",
    "[class*='share-btn']",
    "[class*='social-icon']",
    ".comments-area",
    ".post-navigation",
    ".related-posts",
    ".author-box",
    ".comment-form",
    "#respond",
    ".wp-block-comments",
)

STOP_PHRASES: tuple[str, ...] = (
    "leave a reply",
    "related posts",
    "post comment",
    "save my name",
    "your email",
    "more from",
    "cancel reply",
)

BLOCK_TAGS: tuple[str, ...] = ("h1", "h2", "h3", "h4", "h5", "h6", "p", "ul", "ol", "blockquote", "figure", "img")
HEADING_TAGS: frozenset[str] = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})

MIN_PARAGRAPH_CHARS = 15
MIN_LIST_ITEM_CHARS = 3
MIN_QUOTE_CHARS = 20

LOGGER = logging.getLogger(__name__)


class ScrapingClient:
    """Best-effort article extractor; `scrape` returns None instead of raising."""

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout
        self.session = session or requests.Session()

    def scrape(self, url: str) -> str | None:
        try:
            response = self.session.get(url, headers=HEADERS, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            LOGGER.warning("Scrape failed for %s: %s", url, exc)
            return None

        try:
            content = extract_article_html(response.text)
        except Exception as exc:  # broad: malformed markup must not abort reference collection
            LOGGER.warning("Could not parse %s: %s", url, exc)
            return None

        if len(content) < MIN_CONTENT_CHARS:
            LOGGER.info("Scraped content too short for %s (%s chars)", url, len(content))
            return None
        return content


def extract_article_html(page_html: str) -> str:
    """Serialize the main content blocks of a page in document order."""
    soup = BeautifulSoup(page_html, "html.parser")
    root = _find_content_root(soup)
    if root is None:
        return ""

    for selector in DENYLIST_SELECTORS:
        for node in root.select(selector):
            node.decompose()

    parts: list[str] = []
    for element in root.find_all(BLOCK_TAGS):
        # Nested blocks are emitted as part of their outermost block.
        if _has_block_ancestor(element, root):
            continue
        text = " ".join(element.get_text(" ", strip=True).split())
        lowered = text.lower()
        if any(phrase in lowered for phrase in STOP_PHRASES):
            break
        block = _serialize_block(element, text)
        if block:
            parts.append(block)

    return "\n".join(parts)


def _find_content_root(soup: BeautifulSoup) -> Tag | None:
    for selector in CONTENT_SELECTORS:
        node = soup.select_one(selector)
        if node is not None:
            return node
    return None


def _has_block_ancestor(element: Tag, root: Tag) -> bool:
    for parent in element.parents:
        if parent is root:
            return False
        if parent.name in BLOCK_TAGS or parent.name == "li":
            return True
    return False


def _serialize_block(element: Tag, text: str) -> str:
    name = element.name
    if name in HEADING_TAGS:
        return f"<{name}>{html.escape(text)}</{name}>" if text else ""
    if name == "p":
        blocks = [f"<p>{html.escape(text)}</p>"] if len(text) > MIN_PARAGRAPH_CHARS else []
        # Images wrapped in a paragraph are kept.
        blocks.extend(_serialize_image(img) for img in element.find_all("img"))
        return "\n".join(block for block in blocks if block)
    if name in ("ul", "ol"):
        items = [
            " ".join(li.get_text(" ", strip=True).split())
            for li in element.find_all("li", recursive=False)
        ]
        items = [item for item in items if len(item) > MIN_LIST_ITEM_CHARS]
        if not items:
            return ""
        body = "".join(f"<li>{html.escape(item)}</li>" for item in items)
        return f"<{name}>{body}</{name}>"
    if name == "blockquote":
        return f"<blockquote>{html.escape(text)}</blockquote>" if len(text) > MIN_QUOTE_CHARS else ""
    if name == "figure":
        img = element.find("img")
        return _serialize_image(img) if isinstance(img, Tag) else ""
    if name == "img":
        return _serialize_image(element)
    return ""


def _serialize_image(img: Tag) -> str:
    src = img.get("src") or img.get("data-src") or img.get("data-lazy-src") or ""
    if isinstance(src, list):
        src = src[0] if src else ""
    if not src or src.startswith("data:"):
        return ""
    alt = img.get("alt") or ""
    if isinstance(alt, list):
        alt = " ".join(alt)
    return f'<figure><img src="{html.escape(src)}" alt="{html.escape(alt)}"></figure>'
