"""Normalize chat-model message content across providers.

Some providers (notably Google Gemini) return ``AIMessage.content`` as a list
of content-block dicts rather than a plain string.
"""

from __future__ import annotations

from typing import Any


def extract_text(content: str | list[Any]) -> str:
    """Extract plain text from a message content field.

    Handles two formats:
    - ``str``: returned as-is.
    - ``list``: text is taken from each ``{"type": "text", "text": ...}``
      block (and from bare string items) and joined with newlines.

    Anything else is stringified.
    """
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        parts: list[str] = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                text = block.get("text")
                if isinstance(text, str):
                    parts.append(text)
        return "\n".join(parts)

    return str(content)
