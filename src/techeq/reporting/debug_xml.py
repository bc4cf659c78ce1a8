"""Indented XML writer for per-period debug dumps."""

from typing import Dict, List, TextIO
from xml.sax.saxutils import escape, quoteattr


class XMLDebugWriter:
    """Writes nested XML elements to an open text stream, tracking indentation."""

    def __init__(self, stream: TextIO, indent: str = "\t"):
        self.stream = stream
        self.indent = indent
        self._open_tags: List[str] = []

    @property
    def depth(self) -> int:
        return len(self._open_tags)

    def _write_line(self, text: str):
        self.stream.write(f"{self.indent * self.depth}{text}\n")

    def open_tag(self, tag: str, **attributes):
        """Write an opening tag and indent what follows."""
        attrs = "".join(f" {key}={quoteattr(str(value))}" for key, value in attributes.items())
        self._write_line(f"<{tag}{attrs}>")
        self._open_tags.append(tag)

    def close_tag(self, tag: str):
        """
        Close the innermost open tag.

        Raises:
            ValueError: If ``tag`` is not the innermost open tag
        """
        if not self._open_tags or self._open_tags[-1] != tag:
            raise ValueError(f"Cannot close <{tag}>, open tags are {self._open_tags}")
        self._open_tags.pop()
        self._write_line(f"</{tag}>")

    def element(self, tag: str, value, **attributes):
        """Write a single element with text content."""
        attrs = "".join(f" {key}={quoteattr(str(attr))}" for key, attr in attributes.items())
        self._write_line(f"<{tag}{attrs}>{escape(str(value))}</{tag}>")

    def fields(self, values: Dict[str, float]):
        for key, value in values.items():
            self.element(key, value)
