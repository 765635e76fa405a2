"""BeautifulSoup helpers for link discovery with selector fallback chains."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag


@dataclass(frozen=True)
class Link:
    href: str
    text: str


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def _to_link(tag: Tag, base_url: str) -> Link | None:
    href = tag.get("href")
    if not href:
        return None
    href_str = str(href).strip()
    if base_url:
        href_str = urljoin(base_url, href_str)
    return Link(href=href_str, text=tag.get_text(" ", strip=True))


def select_links(
    root: BeautifulSoup | Tag,
    selector: str,
    *,
    base_url: str = "",
) -> list[Link]:
    """All ``href`` links matching *selector*, in document order."""
    links = (_to_link(tag, base_url) for tag in root.select(selector))
    return [link for link in links if link is not None]


def first_link(
    root: BeautifulSoup | Tag,
    *selectors: str,
    base_url: str = "",
) -> Link | None:
    """First link of the first selector that matches anything."""
    for selector in selectors:
        links = select_links(root, selector, base_url=base_url)
        if links:
            return links[0]
    return None
