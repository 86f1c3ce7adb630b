import re

WORDS_PER_PAGE = 125
WHITESPACE_RE = re.compile(r"(\s+)")


def _content_of(chapter):
    if isinstance(chapter, dict):
        return chapter.get("content") or ""
    return chapter.content or ""


def split_story_into_pages(chapters, words_per_page=WORDS_PER_PAGE):
    """
    Splits chapter text into book pages of at most `words_per_page` words.

    Every chapter starts on a fresh page, so a page never holds the end of one
    chapter and the start of the next. Words are whitespace-separated tokens.
    The whitespace between words on a page is kept as written, so paragraph
    breaks survive; each page is trimmed at both ends.

    Args:
        chapters (list): Chapter models or dicts with a 'content' key, in reading order.
        words_per_page (int, optional): Page size in words. Defaults to 125.

    Returns:
        list of str: The pages, without the cover.
    """
    if words_per_page < 1:
        raise ValueError("words_per_page must be positive")
    pages = []
    for chapter in chapters:
        page = []
        count = 0
        for token in WHITESPACE_RE.split(_content_of(chapter)):
            if not token:
                continue
            if token.isspace():
                if page:
                    page.append(token)
                continue
            if count == words_per_page:
                pages.append("".join(page).strip())
                page = []
                count = 0
            page.append(token)
            count += 1
        if count:
            pages.append("".join(page).strip())
    return pages


class BookViewer:
    """
    Navigation state of the book viewer.

    Page 0 is the cover and pages 1..page_count are story pages. In spread mode
    two pages are shown side by side and navigation moves two at a time.
    """

    def __init__(self, page_count, two_page=False):
        self.page_count = page_count
        self.two_page = two_page

    @property
    def total_pages(self):
        return self.page_count + 1

    @property
    def step(self):
        return 2 if self.two_page else 1

    def clamp(self, page):
        return max(0, min(self.page_count, page))

    def can_go_prev(self, current):
        return current > 0

    def can_go_next(self, current):
        return current < self.total_pages - 1

    def prev_page(self, current):
        return max(0, current - self.step)

    def next_page(self, current):
        return min(self.page_count, current + self.step)

    def visible_pages(self, current):
        """
        Page numbers on screen for `current`.

        Single view shows just `current`. Spread view shows the cover beside the
        first story page when on the cover, otherwise `current` and the page after
        it; a number past the last page is returned as None (blank page).
        """
        current = self.clamp(current)
        if not self.two_page:
            return [current]
        if current == 0:
            return [0, 1 if self.page_count >= 1 else None]
        right = current + 1
        return [current, right if right <= self.page_count else None]
