"""
Fluent builder for formatted text replies (WhatsApp markdown).
"""

from typing import Iterable


class MessageBuilder:
    """Collects lines and joins them with newlines.

    Empty titles, descriptions, lines and footers are skipped, so optional
    values can be passed through without checks::

        text = (
            MessageBuilder()
            .add_title("Help")
            .add_list(["!ping", "!menu"])
            .add_blank_line()
            .add_footer("wabot")
            .build()
        )
    """

    def __init__(self) -> None:
        self._parts: list[str] = []

    @staticmethod
    def _center(text: str, width: int) -> str:
        if len(text) >= width:
            return text
        return " " * ((width - len(text)) // 2) + text

    def add_title(self, title: str, width: int = 50) -> "MessageBuilder":
        if title:
            self._parts.append(self._center(f"*『* {title} *』*", width))
        return self

    def add_sub_title(self, subtitle: str, width: int = 25) -> "MessageBuilder":
        if subtitle:
            self._parts.append(self._center(f"*「* {subtitle} *」*", width))
        return self

    def add_description(self, description: str) -> "MessageBuilder":
        if description:
            self._parts.append(f"*»* {description}")
        return self

    def add_line(self, line: str) -> "MessageBuilder":
        if line:
            self._parts.append(line)
        return self

    def add_list(self, items: Iterable[str], prefix: str = "•") -> "MessageBuilder":
        self._parts.extend(f"*{prefix}* {item}" for item in items if item)
        return self

    def add_blank_line(self) -> "MessageBuilder":
        self._parts.append("")
        return self

    def add_footer(self, footer: str, width: int = 50) -> "MessageBuilder":
        if footer:
            self._parts.append(self._center(f"_{footer}_", width))
        return self

    def build(self) -> str:
        return "\n".join(self._parts)
