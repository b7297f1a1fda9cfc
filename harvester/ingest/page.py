"""Parsed page handle passed between the walker, extractors and the oracle."""

from dataclasses import dataclass

from selectolax.parser import HTMLParser, Node

from harvester.ingest.errors import ParseFailure


@dataclass
class ParsedPage:
    """A parsed HTML document together with its source and URL."""

    url: str
    html: str
    tree: HTMLParser

    def css(self, selector: str) -> list[Node]:
        return self.tree.css(selector)

    def css_first(self, selector: str) -> Node | None:
        return self.tree.css_first(selector)

    def title(self) -> str:
        node = self.tree.css_first("title")
        return node.text(strip=True) if node else ""


def parse_page(text: str, url: str = "") -> ParsedPage:
    """
    Parse normalized page text.

    Raises:
        ParseFailure: If the text is empty or the parser rejects it
    """
    if not text or not text.strip():
        raise ParseFailure(url, "empty document")
    try:
        tree = HTMLParser(text)
    except Exception as e:
        raise ParseFailure(url, str(e)) from e
    if tree.root is None:
        raise ParseFailure(url, "document has no root element")
    return ParsedPage(url=url, html=text, tree=tree)


def node_text(node: Node | None) -> str:
    """Whitespace-trimmed text of a node, or '' for a missing node."""
    if node is None:
        return ""
    return node.text(strip=False).strip()


def is_disabled(node: Node) -> bool:
    """Whether a control is disabled by attribute or by class."""
    attrs = node.attributes
    # selectolax reports a bare `disabled` attribute as None
    if "disabled" in attrs and attrs.get("disabled") != "false":
        return True
    return "disabled" in (attrs.get("class") or "").split()


def squash_text(node: Node | None) -> str:
    """Text of a node with its descendants' text joined by single spaces."""
    if node is None:
        return ""
    return " ".join(node.text(separator=" ").split())
