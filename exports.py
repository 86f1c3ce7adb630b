import html
import io
import logging
import os
import re
import tempfile
import uuid

from ebooklib import epub
from fpdf import FPDF

PUBLISHER = "Onceies"

PDF_FONT = "helvetica"
PDF_MARGIN = 25
PDF_LINE_HEIGHT = 6
PDF_PARAGRAPH_SPACING = 8
PDF_BODY_SIZE = 12
PDF_HEADING_SIZE = 18
PDF_TITLE_SIZE = 28
PDF_AUTHOR_SIZE = 16

HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")
INLINE_RE = re.compile(r"(\*\*\*.+?\*\*\*|\*\*.+?\*\*|__.+?__|\*.+?\*|_.+?_)")
PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")

# core PDF fonts only cover latin-1
LATIN1_REPLACEMENTS = {
    "\u2018": "'", "\u2019": "'", "\u201c": '"', "\u201d": '"',
    "\u2013": "-", "\u2014": "-", "\u2026": "...", "\u00a0": " ",
}

EPUB_CSS = """
body {
  font-family: 'Georgia', 'Times New Roman', serif;
  line-height: 1.8;
  margin: 2em;
  color: #2c3e50;
  background-color: #fefefe;
}
.chapter {
  margin-bottom: 2em;
}
.chapter-title {
  color: #34495e;
  border-bottom: 3px solid #3498db;
  padding-bottom: 0.5em;
  margin-bottom: 1.5em;
  font-size: 1.8em;
  font-weight: bold;
  text-align: center;
}
.chapter-content {
  text-align: justify;
  font-size: 1.1em;
}
.paragraph {
  margin-bottom: 1.2em;
  text-indent: 2em;
  word-spacing: 0.1em;
}
.paragraph:first-of-type {
  margin-top: 1em;
}
@media (max-width: 600px) {
  body {
    margin: 1em;
    font-size: 0.9em;
  }
  .chapter-title {
    font-size: 1.5em;
  }
  .paragraph {
    text-indent: 1.5em;
  }
}
"""


def export_filename(title, extension):
    return f"{re.sub(r'[^a-zA-Z0-9]', '_', title)}.{extension}"


def parse_inline(text):
    """
    Splits a line of Markdown into styled runs.

    `***x***` is bold italic, `**x**` / `__x__` bold, `*x*` / `_x_` italic.
    Unmatched markers are kept as plain text.

    Returns:
        list of (str, str): (text, style) pairs where style is "", "B", "I" or "BI".
    """
    runs = []
    for token in INLINE_RE.split(text):
        if not token:
            continue
        if token.startswith("***") and token.endswith("***") and len(token) > 6:
            runs.append((token[3:-3], "BI"))
        elif (token.startswith("**") and token.endswith("**")) or (token.startswith("__") and token.endswith("__")):
            runs.append((token[2:-2], "B"))
        elif (token.startswith("*") and token.endswith("*")) or (token.startswith("_") and token.endswith("_")):
            runs.append((token[1:-1], "I"))
        else:
            runs.append((token, ""))
    return runs


def parse_blocks(markdown):
    """
    Lightweight Markdown block parser.

    Returns:
        list of (kind, runs): kind is "heading" or "paragraph". Every `#` line is
        its own heading; other lines are joined into paragraphs separated by
        blank lines.
    """
    blocks = []
    for chunk in PARAGRAPH_SPLIT_RE.split(markdown or ""):
        lines = []
        for line in chunk.splitlines():
            match = HEADING_RE.match(line.strip())
            if match:
                if lines:
                    blocks.append(("paragraph", parse_inline(" ".join(lines))))
                    lines = []
                blocks.append(("heading", parse_inline(match.group(2))))
            elif line.strip():
                lines.append(line.strip())
        if lines:
            blocks.append(("paragraph", parse_inline(" ".join(lines))))
    return blocks


def wrap_runs(runs, max_width, measure):
    """
    Greedy word wrap of styled runs.

    Words are added to the current line while the line still fits in
    `max_width`; a word that does not fit starts the next line. A single word
    wider than the line is placed alone on its own line.

    Args:
        runs (list): (text, style) pairs from `parse_inline`.
        max_width (float): Available line width.
        measure (Callable): measure(text, style) -> width.

    Returns:
        list of lines, each a list of (text, style) segments. Segments after the
        first word of a line carry their leading space.
    """
    lines = []
    current = []
    width = 0.0
    for text, style in runs:
        for word in text.split():
            word_width = measure(word, style)
            if current:
                extra = measure(" ", style) + word_width
                if width + extra > max_width:
                    lines.append(current)
                    current = [(word, style)]
                    width = word_width
                    continue
                last_text, last_style = current[-1]
                if last_style == style:
                    current[-1] = (f"{last_text} {word}", style)
                else:
                    current.append((f" {word}", style))
                width += extra
            else:
                current = [(word, style)]
                width = word_width
    if current:
        lines.append(current)
    return lines


def to_latin1(text):
    for char, replacement in LATIN1_REPLACEMENTS.items():
        text = text.replace(char, replacement)
    return text.encode("latin-1", "replace").decode("latin-1")


class StoryPdf:
    """
    Renders a story to an A4 PDF.

    Layout: an optional cover image and the centered title on the first page,
    then the chapters. Headings (chapter titles and `#` lines in the text)
    always open a new page; paragraphs are word-wrapped to the content width
    and flow onto new pages when the bottom margin is reached.
    """

    def __init__(self):
        self.pdf = FPDF(orientation="P", unit="mm", format="A4")
        self.pdf.set_auto_page_break(False)
        self.pdf.set_margins(PDF_MARGIN, PDF_MARGIN, PDF_MARGIN)
        self.content_width = self.pdf.w - 2 * PDF_MARGIN
        self.size = PDF_BODY_SIZE
        self.y = PDF_MARGIN
        self.page_has_body = False

    def measure(self, text, style=""):
        self.pdf.set_font(PDF_FONT, style, self.size)
        return self.pdf.get_string_width(to_latin1(text))

    def new_page(self):
        self.pdf.add_page()
        self.y = PDF_MARGIN
        self.page_has_body = False

    def _ensure_room(self, line_height):
        if self.y > self.pdf.h - PDF_MARGIN - line_height:
            self.new_page()

    def write_lines(self, lines, line_height, center=False):
        for line in lines:
            self._ensure_room(line_height)
            x = PDF_MARGIN
            if center:
                x += (self.content_width - sum(self.measure(t, s) for t, s in line)) / 2
            for text, style in line:
                segment_width = self.measure(text, style)
                self.pdf.set_xy(x, self.y)
                self.pdf.cell(segment_width, line_height, to_latin1(text))
                x += segment_width
            self.y += line_height

    def write_block(self, kind, runs):
        if kind == "heading":
            if self.page_has_body:
                self.new_page()
            self.size = PDF_HEADING_SIZE
            runs = [(text, "B") for text, _ in runs]
            self.write_lines(wrap_runs(runs, self.content_width, self.measure), PDF_LINE_HEIGHT + 2)
        else:
            self.size = PDF_BODY_SIZE
            self.write_lines(wrap_runs(runs, self.content_width, self.measure), PDF_LINE_HEIGHT)
            self.page_has_body = True
        self.y += PDF_PARAGRAPH_SPACING

    def write_title_page(self, title, author=None, cover_image=None):
        self.new_page()
        if cover_image:
            try:
                image_width = self.content_width * 0.7
                self.pdf.image(io.BytesIO(cover_image), x=PDF_MARGIN + (self.content_width - image_width) / 2,
                               y=self.y, w=image_width, h=image_width)
                self.y += image_width + 25
            except Exception as e:
                logging.warning(f"Failed to add cover image: {e}")
        self.size = PDF_TITLE_SIZE
        self.write_lines(wrap_runs([(title, "B")], self.content_width, self.measure), PDF_LINE_HEIGHT + 2, center=True)
        self.y += 20
        if author:
            self.size = PDF_AUTHOR_SIZE
            self.write_lines([[(f"By {author}", "I")]], PDF_LINE_HEIGHT, center=True)

    def render(self, title, chapters, author=None, cover_image=None):
        self.write_title_page(title, author=author, cover_image=cover_image)
        self.new_page()
        for chapter in chapters:
            self.write_block("heading", parse_inline(chapter.title))
            for kind, runs in parse_blocks(chapter.content):
                self.write_block(kind, runs)
        return bytes(self.pdf.output())


def build_pdf(title, chapters, author=None, cover_image=None):
    """
    Builds the PDF export of a story.

    Args:
        title (str): Book title for the title page.
        chapters (list): Objects with `title` and `content` (Markdown), in reading order.
        author (str, optional): Printed as "By <author>" under the title.
        cover_image (bytes, optional): Image placed above the title; skipped if unreadable.

    Returns:
        bytes: The PDF document.
    """
    return StoryPdf().render(title, chapters, author=author, cover_image=cover_image)


def render_chapter_html(chapter):
    paragraphs = "".join(
        f'<p class="paragraph">{html.escape(paragraph.strip())}</p>'
        for paragraph in chapter.content.split("\n\n")
        if paragraph.strip()
    )
    return (
        '<div class="chapter">'
        f'<h1 class="chapter-title">{html.escape(chapter.title)}</h1>'
        f'<div class="chapter-content">{paragraphs}</div>'
        '</div>'
    )


def build_epub(title, chapters, author=None, cover_image=None):
    """
    Builds the EPUB export of a story.

    The book is written to a temporary file which is read back into memory and
    removed before returning.

    Args:
        title (str): Book title.
        chapters (list): Objects with `title` and `content`, in reading order.
        author (str, optional): Defaults to "Unknown Author".
        cover_image (bytes, optional): PNG cover embedded as the book cover.

    Returns:
        bytes: The EPUB archive.
    """
    book = epub.EpubBook()
    book.set_identifier(str(uuid.uuid4()))
    book.set_title(title)
    book.set_language("en")
    book.add_author(author or "Unknown Author")
    book.add_metadata("DC", "publisher", PUBLISHER)

    style = epub.EpubItem(uid="style_book", file_name="style/book.css", media_type="text/css", content=EPUB_CSS)
    book.add_item(style)

    spine = []
    if cover_image:
        book.set_cover("cover.png", cover_image)
        spine.append("cover")
    spine.append("nav")

    items = []
    for index, chapter in enumerate(chapters, start=1):
        item = epub.EpubHtml(title=chapter.title, file_name=f"chapter_{index}.xhtml", lang="en")
        item.content = render_chapter_html(chapter)
        item.add_item(style)
        book.add_item(item)
        items.append(item)

    book.toc = items
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = spine + items

    fd, path = tempfile.mkstemp(suffix=".epub")
    os.close(fd)
    try:
        epub.write_epub(path, book, {})
        with open(path, "rb") as f:
            return f.read()
    finally:
        os.remove(path)
