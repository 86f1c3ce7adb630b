import pytest

from pagination import BookViewer, split_story_into_pages


def words(prefix, count):
    return " ".join(f"{prefix}{i}" for i in range(count))


def test_chapters_start_on_new_pages():
    chapters = [{"content": words("a", 130)}, {"content": words("b", 10)}]
    pages = split_story_into_pages(chapters)
    assert [len(page.split()) for page in pages] == [125, 5, 10]
    assert pages[2].startswith("b0")


def test_pages_preserve_text():
    chapters = [{"content": "One  two\nthree\n\n four"}, {"content": "five six"}]
    pages = split_story_into_pages(chapters, words_per_page=3)
    assert pages == ["One  two\nthree", "four", "five six"]
    assert " ".join(" ".join(pages).split()) == " ".join(" ".join(c["content"].split()) for c in chapters)


def test_empty_chapter_has_no_pages():
    assert split_story_into_pages([{"content": ""}, {"content": None}]) == []


def test_words_per_page_must_be_positive():
    with pytest.raises(ValueError):
        split_story_into_pages([{"content": "hi"}], words_per_page=0)


def test_single_page_navigation():
    viewer = BookViewer(3)
    assert viewer.total_pages == 4
    assert viewer.visible_pages(2) == [2]
    assert viewer.next_page(3) == 3
    assert viewer.prev_page(0) == 0
    assert not viewer.can_go_prev(0)
    assert not viewer.can_go_next(3)


def test_spread_navigation():
    viewer = BookViewer(4, two_page=True)
    assert viewer.visible_pages(0) == [0, 1]
    assert viewer.visible_pages(2) == [2, 3]
    assert viewer.visible_pages(4) == [4, None]
    assert viewer.next_page(0) == 2
    assert viewer.next_page(3) == 4
    assert viewer.prev_page(1) == 0


def test_spread_of_book_with_no_pages():
    assert BookViewer(0, two_page=True).visible_pages(0) == [0, None]


def test_paragraph_breaks_stay_on_the_page():
    pages = split_story_into_pages([{"content": "First paragraph here.\n\nSecond paragraph here.\n"}])
    assert pages == ["First paragraph here.\n\nSecond paragraph here."]


def test_page_break_drops_whitespace_at_the_seam():
    pages = split_story_into_pages([{"content": "  one two\n\nthree four  "}], words_per_page=2)
    assert pages == ["one two", "three four"]
