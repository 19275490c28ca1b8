from __future__ import annotations

import re
from collections.abc import Iterable
from html import unescape
from html.parser import HTMLParser
from typing import Final

_ALLOWED_TAGS: Final[frozenset[str]] = frozenset(
    {
        "a",
        "b",
        "br",
        "div",
        "em",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "i",
        "img",
        "li",
        "ol",
        "p",
        "span",
        "strong",
        "table",
        "tbody",
        "td",
        "th",
        "thead",
        "tr",
        "ul",
    }
)

_VOID_TAGS: Final[frozenset[str]] = frozenset({"br", "img"})

# Attribute order here is the serialization order.
_ALLOWED_ATTRS: Final[dict[str, tuple[str, ...]]] = {
    "a": ("href", "target", "rel"),
    "span": ("style",),
    "img": ("src", "alt", "width", "height"),
    "td": ("colspan", "rowspan"),
    "th": ("colspan", "rowspan"),
}

# Start tags that implicitly close an open <p>, whether or not they are kept.
_CLOSES_PARAGRAPH: Final[frozenset[str]] = frozenset(
    {
        "address",
        "article",
        "aside",
        "blockquote",
        "div",
        "dl",
        "fieldset",
        "figure",
        "footer",
        "form",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "header",
        "hr",
        "li",
        "main",
        "nav",
        "ol",
        "p",
        "pre",
        "section",
        "table",
        "ul",
    }
)

# tag -> (open elements it closes, elements that stop the search)
_IMPLIED_END: Final[dict[str, tuple[frozenset[str], frozenset[str]]]] = {
    "li": (frozenset({"li"}), frozenset({"ul", "ol"})),
    "td": (frozenset({"td", "th"}), frozenset({"tr", "table"})),
    "th": (frozenset({"td", "th"}), frozenset({"tr", "table"})),
    "tr": (frozenset({"tr"}), frozenset({"table", "thead", "tbody"})),
    "thead": (frozenset({"thead", "tbody"}), frozenset({"table"})),
    "tbody": (frozenset({"thead", "tbody"}), frozenset({"table"})),
    "a": (frozenset({"a"}), frozenset()),
}
_PARAGRAPH_SCOPE: Final[frozenset[str]] = frozenset({"table", "td", "th"})

_HTML_WHITESPACE: Final[str] = " \t\n\f\r"

# A start or end tag still open when the input ends.
_TRAILING_PARTIAL_TAG: Final[re.Pattern[str]] = re.compile(r"</?[a-zA-Z][^>]*\Z")


def _escape_text(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("\xa0", "&nbsp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
    )


def _escape_attr(value: str) -> str:
    return value.replace("&", "&amp;").replace("\xa0", "&nbsp;").replace('"', "&quot;")


def _is_javascript_url(value: str) -> bool:
    return value.lstrip().lower().startswith("javascript:")


def decode_entities(raw: str | None) -> str:
    """Reverse the entity encoding GLPI applies to stored rich text (``&#60;p&#62;`` -> ``<p>``)."""
    if not raw:
        return ""
    return unescape(raw)


class _TextCollector(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._parts: list[str] = []

    def handle_data(self, data: str) -> None:
        self._parts.append(data)

    def text(self) -> str:
        return "".join(self._parts)


def strip_to_plain_text(raw: str | None) -> str:
    """Decode entities, drop every tag and return the trimmed text content."""
    decoded = decode_entities(raw)
    if not decoded:
        return ""
    parser = _TextCollector()
    parser.feed(decoded)
    parser.close()
    return parser.text().strip()


class _SafeHtmlBuilder(HTMLParser):
    """
    Rebuild an HTML fragment keeping only allow-listed elements and attributes.

    Disallowed elements are unwrapped: their children land in the nearest kept ancestor,
    so no text is lost.
    """

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._out: list[str] = []
        self._open: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        tag = tag.lower()
        if tag in _CLOSES_PARAGRAPH:
            self._close_first(frozenset({"p"}), _PARAGRAPH_SCOPE)
        implied = _IMPLIED_END.get(tag)
        if implied is not None:
            self._close_first(*implied)

        if tag not in _ALLOWED_TAGS:
            return

        attr_text = "".join(
            f' {name}="{_escape_attr(value)}"' for name, value in self._clean_attrs(tag, attrs)
        )
        self._out.append(f"<{tag}{attr_text}>")
        if tag not in _VOID_TAGS:
            self._open.append(tag)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        # HTML ignores the self-closing flag on non-void elements.
        self.handle_starttag(tag, attrs)

    def handle_endtag(self, tag: str) -> None:
        tag = tag.lower()
        if tag == "br":
            # </br> parses as <br>.
            self.handle_starttag("br", [])
            return
        if tag not in self._open:
            return
        while self._open:
            name = self._open.pop()
            self._out.append(f"</{name}>")
            if name == tag:
                return

    def handle_data(self, data: str) -> None:
        if data:
            self._out.append(_escape_text(data))

    def close(self) -> None:
        if _TRAILING_PARTIAL_TAG.match(self.rawdata):
            self.rawdata = ""
        super().close()
        while self._open:
            self._out.append(f"</{self._open.pop()}>")

    def sanitized_html(self) -> str:
        return "".join(self._out)

    def _close_first(self, targets: frozenset[str], boundary: frozenset[str]) -> None:
        for index in range(len(self._open) - 1, -1, -1):
            name = self._open[index]
            if name in targets:
                self._close_down_to(index)
                return
            if name in boundary:
                return

    def _close_down_to(self, index: int) -> None:
        while len(self._open) > index:
            self._out.append(f"</{self._open.pop()}>")

    @staticmethod
    def _clean_attrs(
        tag: str, attrs: Iterable[tuple[str, str | None]]
    ) -> list[tuple[str, str]]:
        present: dict[str, str] = {}
        for key, value in attrs:
            # Duplicate attributes: the first occurrence wins.
            present.setdefault(key.lower(), value or "")

        kept: dict[str, str] = {}
        for name in _ALLOWED_ATTRS.get(tag, ()):
            value = present.get(name, "")
            if not value:
                continue
            if name == "href" and _is_javascript_url(value):
                continue
            kept[name] = value
        if tag == "a":
            kept["target"] = "_blank"
        return list(kept.items())


def sanitize_to_safe_html(raw: str | None) -> str:
    """
    Decode entities, then rebuild the markup with the timeline allow-list.

    Anchors always get ``target="_blank"`` and lose ``javascript:`` hrefs.
    """
    decoded = decode_entities(raw).lstrip(_HTML_WHITESPACE)
    if not decoded:
        return ""
    parser = _SafeHtmlBuilder()
    parser.feed(decoded)
    parser.close()
    return parser.sanitized_html()
