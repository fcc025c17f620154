"""
Default README parser: Markdown text -> catalog items.

Pure function, no I/O. The document is tokenized as CommonMark by
markdown-it-py and the block token stream is walked in order:

  heading h2          -> current category (clears the subcategory)
  heading h3          -> current subcategory
  list item paragraph -> one item, if it holds a link that is not an in-page anchor

Fenced and indented code are single tokens, so anything inside them is
never seen as a list item.
"""

from __future__ import annotations

import re

from markdown_it import MarkdownIt
from markdown_it.token import Token

from catalog_builder.domain.entities import CatalogItem

DEFAULT_CATEGORY = "Uncategorized"

SEPARATOR = re.compile(r"^\s*[-–—]\s*")

_markdown = MarkdownIt("commonmark")


def _plain(tokens: list[Token]) -> str:
    """Inline tokens -> plain text. Images, raw HTML and emphasis markers are dropped."""
    parts = []
    for token in tokens:
        if token.type in ("text", "code_inline"):
            parts.append(token.content)
        elif token.type in ("softbreak", "hardbreak"):
            parts.append(" ")
    return "".join(parts)


def _parse_list_item(inline: Token, category: str, subcategory: str | None) -> CatalogItem | None:
    children = inline.children or []
    start = next((i for i, t in enumerate(children) if t.type == "link_open"), None)
    if start is None:
        return None

    end, depth = start, 0
    for end in range(start, len(children)):
        if children[end].type == "link_open":
            depth += 1
        elif children[end].type == "link_close":
            depth -= 1
            if depth == 0:
                break

    name = _plain(children[start + 1:end]).strip()
    url = str(children[start].attrGet("href") or "").strip()
    if not name or not url or url.startswith("#"):
        return None

    description = SEPARATOR.sub("", _plain(children[end + 1:]).strip(), count=1).strip()
    return CatalogItem(
        name        = name,
        url         = url,
        description = description,
        category    = category,
        subcategory = subcategory,
    )


def parse_readme(markdown: str) -> list[CatalogItem]:
    items: list[CatalogItem] = []
    category = DEFAULT_CATEGORY
    subcategory: str | None = None

    # One flag per open list item: has its first paragraph been seen yet
    open_items: list[bool] = []
    tokens = _markdown.parse(markdown)

    for i, token in enumerate(tokens):
        if token.type == "heading_open":
            text = _plain(tokens[i + 1].children or []).strip()
            if token.tag == "h2":
                category, subcategory = text, None
            elif token.tag == "h3":
                subcategory = text or None
        elif token.type == "list_item_open":
            open_items.append(False)
        elif token.type == "list_item_close":
            open_items.pop()
        elif token.type == "paragraph_open" and open_items and not open_items[-1]:
            open_items[-1] = True
            item = _parse_list_item(tokens[i + 1], category, subcategory)
            if item is not None:
                items.append(item)

    return items
