"""
Selector-driven DOM access on top of selectolax.

Extractors describe each field as an ordered tuple of ``SelectorRule`` values
and evaluate them through ``Document``; platform differences stay in data.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional, Sequence

from selectolax.lexbor import LexborHTMLParser, LexborNode

from noteferry.utils.text import clean_text


TEXT = "#text"


@dataclass(frozen=True)
class SelectorRule:
    """A CSS selector plus what to read from matching nodes.

    ``attributes`` lists sources tried in order: attribute names, or ``TEXT``
    for the node's text content. An empty tuple reads the text.
    """

    selector: str
    attributes: tuple[str, ...] = ()
    # For <meta> lookups: matches property= or name= equal to this key.
    meta_key: Optional[str] = None

    @classmethod
    def text(cls, selector: str) -> SelectorRule:
        return cls(selector)

    @classmethod
    def attr(cls, selector: str, *attributes: str) -> SelectorRule:
        return cls(selector, attributes)

    @classmethod
    def meta(cls, key: str) -> SelectorRule:
        """``<meta property=key>`` or ``<meta name=key>``, reading ``content``."""
        return cls("meta", ("content",), meta_key=key)

    def selects(self, node: LexborNode) -> bool:
        if self.meta_key is None:
            return True
        attrs = node.attributes
        return attrs.get("property") == self.meta_key or attrs.get("name") == self.meta_key

    def read(self, node: LexborNode) -> str:
        for source in self.attributes or (TEXT,):
            if source == TEXT:
                value = clean_text(node.text(separator=" "))
            else:
                value = (node.attributes.get(source) or "").strip()
            if value:
                return value
        return ""


class Document:
    """Parsed HTML with the three capabilities extractors rely on: query, text, attribute."""

    def __init__(self, html: str) -> None:
        self.tree = LexborHTMLParser(html or "")

    def nodes(self, selector: str) -> list[LexborNode]:
        return self.tree.css(selector)

    def matches(self, rule: SelectorRule) -> Iterator[LexborNode]:
        """Nodes matching ``rule`` in document order."""
        return (node for node in self.tree.css(rule.selector) if rule.selects(node))

    def first(self, rule: SelectorRule) -> Optional[str]:
        """Value of the first node matching ``rule``; None when absent or empty."""
        node = next(self.matches(rule), None)
        if node is None:
            return None
        return rule.read(node) or None

    def first_of(
        self,
        rules: Sequence[SelectorRule],
        accept: Callable[[str], bool] = bool,
        transform: Callable[[str], str] = lambda v: v,
    ) -> Optional[str]:
        """Walk ``rules`` in order and return the first transformed value ``accept`` approves."""
        for rule in rules:
            value = self.first(rule)
            if value is None:
                continue
            value = transform(value)
            if value and accept(value):
                return value
        return None

    def values(self, rule: SelectorRule) -> Iterator[str]:
        """Non-empty values of every node matching ``rule``, in document order."""
        for node in self.matches(rule):
            value = rule.read(node)
            if value:
                yield value

    def all_values(self, rules: Iterable[SelectorRule]) -> list[str]:
        collected: list[str] = []
        for rule in rules:
            collected.extend(self.values(rule))
        return collected

    def remove(self, selectors: Iterable[str]) -> None:
        """Drop every node matching any of ``selectors``. Mutates the tree."""
        for selector in selectors:
            # Nested matches come after their ancestors; remove innermost first.
            for node in reversed(self.tree.css(selector)):
                node.decompose()

    def body_text(self) -> str:
        node = self.tree.body or self.tree.root
        if node is None:
            return ""
        return clean_text(node.text(separator=" "))
