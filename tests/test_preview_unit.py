"""Unit tests for plain-text preview extraction.

Tests cover:
- Text and block-level spacing
- Placeholders for images, code blocks and uploaded files
- Skipped non-visible content
- Whitespace collapsing and truncation
- Tolerance of malformed markup
"""

import pytest

from recents_core.domain.preview import (
    ATTACHMENT_PLACEHOLDER,
    CODE_PLACEHOLDER,
    ELLIPSIS,
    IMAGE_PLACEHOLDER,
    extract_preview_text,
)


class TestTextExtraction:
    """Tests for text and block handling."""

    def test_paragraph_with_inline_formatting_and_image(self):
        """Text segments are joined by one space and the image is a placeholder."""
        html = '<p>Hello <b>world</b></p><img alt="cat">'

        assert extract_preview_text(html, max_length=150) == "Hello world [cat]"

    def test_blocks_do_not_run_together(self):
        assert extract_preview_text("<p>one</p><p>two</p>") == "one two"
        assert extract_preview_text("<ul><li>a</li><li>b</li></ul>") == "a b"
        assert extract_preview_text("<div>top</div>after") == "top after"

    def test_line_break_becomes_space(self):
        assert extract_preview_text("line<br>break") == "line break"

    def test_inline_elements_do_not_add_spaces(self):
        assert extract_preview_text("<p>un<em>believ</em>able</p>") == "unbelievable"

    def test_whitespace_is_collapsed_and_trimmed(self):
        html = "<p>  lots \n\n of\t\tspace  </p>\n"

        assert extract_preview_text(html) == "lots of space"

    def test_entities_are_decoded(self):
        assert extract_preview_text("<p>Tom &amp; Jerry</p>") == "Tom & Jerry"

    def test_mentions_keep_their_text(self):
        html = '<p><span class="user-mention" data-user-id="3">@Alice</span> lunch?</p>'

        assert extract_preview_text(html) == "@Alice lunch?"

    def test_regular_link_uses_visible_text(self):
        html = '<p>See <a href="https://example.com/docs">the docs</a></p>'

        assert extract_preview_text(html) == "See the docs"

    @pytest.mark.parametrize("html", ["", None])
    def test_empty_input(self, html):
        assert extract_preview_text(html) == ""


class TestPlaceholders:
    """Tests for content replaced wholesale."""

    def test_image_without_alt_uses_camera(self):
        assert extract_preview_text('<img src="/x.png">') == IMAGE_PLACEHOLDER

    def test_placeholder_is_separated_from_text(self):
        html = '<p>look<img alt="chart">here</p>'

        assert extract_preview_text(html) == "look [chart] here"

    def test_code_block_is_replaced(self):
        html = "<p>Try this:</p><pre><code>rm -rf /tmp/cache\nexit 0</code></pre>"

        assert extract_preview_text(html) == f"Try this: {CODE_PLACEHOLDER}"

    def test_inline_code_keeps_text(self):
        html = "<p>Run <code>make test</code> first</p>"

        assert extract_preview_text(html) == "Run make test first"

    def test_uploaded_image_link(self):
        html = '<p><a href="/user_uploads/2/ab/cat.PNG">cat.PNG</a></p>'

        assert extract_preview_text(html) == IMAGE_PLACEHOLDER

    def test_uploaded_file_link(self):
        html = '<p>Notes: <a href="/user_uploads/2/cd/minutes.pdf">minutes.pdf</a></p>'

        assert extract_preview_text(html) == f"Notes: {ATTACHMENT_PLACEHOLDER}"

    def test_inline_image_preview_block(self):
        html = (
            '<div class="message_inline_image">'
            '<a href="/user_uploads/2/ef/photo.jpg?size=large" title="photo.jpg">'
            '<img src="/user_uploads/thumbnail/2/ef/photo.jpg/840x560.webp">'
            "</a></div>"
        )

        assert extract_preview_text(html) == IMAGE_PLACEHOLDER

    def test_inline_image_class_without_upload_path(self):
        html = '<a class="message_inline_image" href="https://cdn.example.com/clip.mp4">clip</a>'

        assert extract_preview_text(html) == ATTACHMENT_PLACEHOLDER


class TestSkippedContent:
    """Tests for content that contributes nothing."""

    def test_script_and_style_are_skipped(self):
        html = "<style>p { color: red }</style><p>shown</p><script>alert(1)</script>"

        assert extract_preview_text(html) == "shown"

    def test_comments_are_skipped(self):
        assert extract_preview_text("<!-- secret -->visible") == "visible"

    def test_hidden_elements_are_skipped(self):
        html = "<p>shown</p><div hidden>not shown</div>"

        assert extract_preview_text(html) == "shown"


class TestTruncation:
    """Tests for the length bound and ellipsis."""

    def test_long_text_is_truncated_with_ellipsis(self):
        result = extract_preview_text("<p>" + "a" * 400 + "</p>")

        assert len(result) == 150
        assert result.endswith(ELLIPSIS)

    @pytest.mark.parametrize("length", range(140, 161))
    def test_ellipsis_iff_longer_than_max(self, length):
        result = extract_preview_text("<p>" + "b" * length + "</p>", max_length=150)

        assert len(result) <= 150
        assert result.endswith(ELLIPSIS) == (length > 150)

    def test_collapsed_whitespace_does_not_count(self):
        """Text that only exceeds the limit before collapsing is not truncated."""
        words = " \n  ".join(["word"] * 30)  # 149 characters once collapsed

        result = extract_preview_text(f"<p>{words}</p>", max_length=150)

        assert not result.endswith(ELLIPSIS)
        assert len(result) == 149

    def test_no_space_before_ellipsis(self):
        assert extract_preview_text("<p>hello world</p>", max_length=7) == "hello" + ELLIPSIS

    def test_cut_mid_word(self):
        assert extract_preview_text("<p>hello world</p>", max_length=8) == "hello w" + ELLIPSIS

    def test_length_of_one_is_just_the_ellipsis(self):
        assert extract_preview_text("<p>hi</p>", max_length=1) == ELLIPSIS

    @pytest.mark.parametrize("max_length", [0, -5])
    def test_rejects_non_positive_max_length(self, max_length):
        with pytest.raises(ValueError, match="max_length"):
            extract_preview_text("<p>hi</p>", max_length=max_length)

    def test_very_long_message_is_bounded(self):
        html = "<p>" + "<p>chunk of text</p>" * 5_000 + "</p>"

        result = extract_preview_text(html)

        assert len(result) == 150
        assert result.startswith("chunk of text chunk of text")


class TestMalformedMarkup:
    """Malformed markup never raises."""

    @pytest.mark.parametrize(
        "html,expected",
        [
            ("<p>unclosed <b>bold", "unclosed bold"),
            ("</p></div>text", "text"),
            ("<<>>", ""),
            ("<p class='x>broken attr</p>", ""),
            ("plain text only", "plain text only"),
            ("<unknown-tag>inside</unknown-tag>", "inside"),
        ],
    )
    def test_malformed_markup(self, html, expected):
        result = extract_preview_text(html)

        assert isinstance(result, str)
        if expected:
            assert result == expected
