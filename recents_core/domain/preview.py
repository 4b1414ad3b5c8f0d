"""Plain-text previews of rendered message content.

Message content arrives as rendered HTML. The conversation list only needs a
short single-line summary, so this module walks the parsed tree depth first
and stops as soon as enough text has been collected:

- Text nodes contribute their text, with whitespace collapsed as it is written
- Block elements (p, div, li, br, ...) are separated by a single space
- Images become a placeholder: "[alt text]" when present, otherwise a camera
- Code blocks (pre) become "[code]"; inline code keeps its text
- Uploaded-file links become a camera (image files) or a paperclip (others)
- script/style/template and hidden elements contribute nothing

Usage:
    preview = extract_preview_text(message.content)
    preview = extract_preview_text(message.content, max_length=80)
"""

import re
from typing import Optional

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.builder import ParserRejectedMarkup
from bs4.element import PreformattedString

from recents_core.observability import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_LENGTH = 150

ELLIPSIS = "…"
IMAGE_PLACEHOLDER = "📷"
ATTACHMENT_PLACEHOLDER = "📎"
CODE_PLACEHOLDER = "[code]"

UPLOAD_PATH = "/user_uploads/"
INLINE_IMAGE_CLASS = "message_inline_image"
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp")

BLOCK_TAGS = frozenset({
    "p", "div", "li", "ul", "ol", "br", "blockquote", "table", "tr",
    "h1", "h2", "h3", "h4", "h5", "h6",
})
SKIPPED_TAGS = frozenset({"script", "style", "template"})

_WORD_RE = re.compile(r"\S+")
_TAG_RE = re.compile(r"<[^>]*>")

# Stack marker: close the block element opened before it.
_BLOCK_END = object()


class _PreviewBuffer:
    """Whitespace-collapsing text buffer that knows when it is full.

    Words are joined by single spaces as they are written, so the buffer's
    length is always the length of the final (untruncated) preview. Leading
    and trailing whitespace never materializes.
    """

    def __init__(self, limit: int):
        self.limit = limit
        self._parts: list[str] = []
        self._length = 0
        self._pending_space = False

    def __len__(self) -> int:
        return self._length

    @property
    def full(self) -> bool:
        """True once more text than ``limit`` has been collected."""
        return self._length > self.limit

    def space(self) -> None:
        if self._length:
            self._pending_space = True

    def write(self, text: str) -> None:
        pos = 0
        for match in _WORD_RE.finditer(text):
            if match.start() > pos:
                self.space()
            self._append(match.group())
            pos = match.end()
            if self.full:
                return
        if pos < len(text):
            self.space()

    def token(self, placeholder: str) -> None:
        self.space()
        self._append(placeholder)
        self.space()

    def _append(self, word: str) -> None:
        if self._pending_space:
            self._parts.append(" ")
            self._length += 1
            self._pending_space = False
        # One past the limit is enough to know truncation is needed.
        remaining = self.limit + 1 - self._length
        if remaining <= 0:
            return
        word = word[:remaining]
        self._parts.append(word)
        self._length += len(word)

    def getvalue(self) -> str:
        return "".join(self._parts)


def extract_preview_text(html: Optional[str], max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Extract a plain text preview from rendered message HTML.

    Args:
        html: Rendered message content.
        max_length: Maximum length of the result, ellipsis included.

    Returns:
        Single-line preview, at most ``max_length`` characters. It ends with
        an ellipsis if and only if the full text was longer than that.

    Raises:
        ValueError: If max_length is less than 1.
    """
    if max_length < 1:
        raise ValueError(f"max_length must be at least 1, got {max_length}")
    if not html:
        return ""

    buffer = _PreviewBuffer(max_length)
    try:
        fragment = BeautifulSoup(html, "html.parser")
    except (ParserRejectedMarkup, AssertionError, ValueError, TypeError) as e:
        logger.debug("Markup rejected, falling back to tag stripping", error=str(e))
        buffer.write(_TAG_RE.sub(" ", html))
    else:
        _walk(fragment, buffer)

    result = buffer.getvalue()
    if len(result) > max_length:
        result = result[: max_length - 1].rstrip() + ELLIPSIS
    return result


def _walk(root, buffer: _PreviewBuffer) -> None:
    """Depth-first traversal that stops once the buffer is full."""
    stack: list = [root]
    while stack and not buffer.full:
        node = stack.pop()

        if node is _BLOCK_END:
            buffer.space()
            continue

        if isinstance(node, PreformattedString):
            # Comments, doctypes, CDATA and processing instructions.
            continue

        if isinstance(node, NavigableString):
            buffer.write(str(node))
            continue

        if isinstance(node, Tag):
            name = (node.name or "").lower()

            if name in SKIPPED_TAGS or node.has_attr("hidden"):
                continue

            if name == "img":
                alt = (node.get("alt") or "").strip()
                buffer.token(f"[{alt}]" if alt else IMAGE_PLACEHOLDER)
                continue

            if name == "pre":
                buffer.token(CODE_PLACEHOLDER)
                continue

            if name == "a":
                placeholder = _attachment_placeholder(node)
                if placeholder is not None:
                    buffer.token(placeholder)
                    continue

            if name in BLOCK_TAGS:
                buffer.space()
                stack.append(_BLOCK_END)

        # Unknown node kinds are treated as plain containers.
        children = getattr(node, "contents", None) or ()
        stack.extend(reversed(children))


def _attachment_placeholder(link: Tag) -> Optional[str]:
    """Placeholder for an uploaded-file link, or None for an ordinary link."""
    href = link.get("href") or ""
    if isinstance(href, list):
        href = " ".join(href)
    classes = link.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()

    if UPLOAD_PATH not in href and INLINE_IMAGE_CLASS not in classes:
        return None

    path = href.lower().split("?", 1)[0].split("#", 1)[0]
    if path.endswith(IMAGE_EXTENSIONS):
        return IMAGE_PLACEHOLDER
    return ATTACHMENT_PLACEHOLDER
