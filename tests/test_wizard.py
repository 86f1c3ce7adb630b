import threading

import pytest

from wizard import CompleteStep, FormStep, GeneratingStep, OutlineStep, StoryWizard, WizardError
from conftest import LOST_KITTEN_OUTLINE


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self.body = body

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        return self.body


class FakeSession:
    """Answers API calls from a route table; records what was sent."""

    def __init__(self):
        self.headers = {}
        self.calls = []
        self.lock = threading.Lock()
        self.routes = {
            "/api/generate_outline": lambda body: FakeResponse(200, {
                "success": True, "outline": LOST_KITTEN_OUTLINE, "userInputId": 7
            }),
            "/api/generate_story": self.approve,
            "/api/generate_story/chapter": lambda body: FakeResponse(200, {
                "success": True,
                "chapter": {"chapter_number": body["chapterNumber"], "title": body["title"], "content": "..."}
            }),
            "/api/generate_cover_image": lambda body: FakeResponse(200, {"success": True, "imageUrl": "u", "fileName": "f"})
        }

    def approve(self, body):
        tasks = [{
            "chapterNumber": chapter["chapter_number"],
            "title": chapter["title"],
            "summary": chapter["summary"],
            "userInput": {"title": "The Lost Kitten"}
        } for chapter in body["outline"]["chapters"]]
        return FakeResponse(200, {"success": True, "storyId": 3, "chapterTasks": tasks})

    def post(self, url, json=None, timeout=None):
        path = url.replace("http://onceies.test", "")
        with self.lock:
            self.calls.append((path, json))
        return self.routes[path](json)

    def paths(self):
        return [path for path, _ in self.calls]


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def wizard(session):
    return StoryWizard("http://onceies.test/", token="tok", session=session)


def submit(wizard):
    return wizard.submit_form("The Lost Kitten", "3-5", "A kitten gets lost and finds its way home", "Whiskers, Mia")


def test_token_is_sent_as_bearer(wizard, session):
    assert session.headers["Authorization"] == "Bearer tok"
    assert isinstance(wizard.step, FormStep)


def test_form_to_outline(wizard):
    step = submit(wizard)

    assert isinstance(step, OutlineStep)
    assert step.user_input_id == 7
    assert len(step.outline.chapters) == 5


def test_empty_form_stays_on_form(wizard, session):
    step = wizard.submit_form("The Lost Kitten", "3-5", " ", "Whiskers")

    assert isinstance(step, FormStep)
    assert "plot" in step.error
    assert session.calls == []


def test_limit_reached_asks_for_upgrade(wizard, session):
    session.routes["/api/generate_outline"] = lambda body: FakeResponse(403, {
        "error": "Story limit reached.", "plan": "free", "remaining": 0, "needsUpgrade": True
    })

    step = submit(wizard)

    assert isinstance(step, FormStep)
    assert step.needs_upgrade is True
    assert step.error == "Story limit reached."


def test_edits_are_sent_on_approval(wizard, session):
    submit(wizard)
    wizard.update_chapter_title(0, "A Very Rainy Morning")
    wizard.update_chapter_summary(4, "Whiskers gets home in time for tea.")

    wizard.approve()

    _, body = session.calls[1]
    assert body["userInputId"] == 7
    assert body["outline"]["chapters"][0]["title"] == "A Very Rainy Morning"
    assert body["outline"]["chapters"][4]["summary"] == "Whiskers gets home in time for tea."


def test_approve_fans_out_then_paints_cover(wizard, session):
    submit(wizard)

    step = wizard.approve()

    assert step == CompleteStep(story_id=3, cover_generated=True)
    paths = session.paths()
    assert paths.count("/api/generate_story/chapter") == 5
    assert paths[-1] == "/api/generate_cover_image"
    chapter_bodies = [body for path, body in session.calls if path == "/api/generate_story/chapter"]
    last = [body["chapterNumber"] for body in chapter_bodies if body["isLastChapter"]]
    assert last == [5]
    assert [chapter["chapter_number"] for chapter in wizard.chapters] == [1, 2, 3, 4, 5]


def test_chapters_run_concurrently(wizard, session):
    submit(wizard)
    barrier = threading.Barrier(5, timeout=5)
    answer = session.routes["/api/generate_story/chapter"]

    def wait_for_all(body):
        # only passes if all five requests are in flight together
        barrier.wait()
        return answer(body)

    session.routes["/api/generate_story/chapter"] = wait_for_all

    assert isinstance(wizard.approve(), CompleteStep)


def test_failed_cover_still_completes(wizard, session):
    session.routes["/api/generate_cover_image"] = lambda body: FakeResponse(500, {"error": "No image generated"})
    submit(wizard)

    step = wizard.approve()

    assert step == CompleteStep(story_id=3, cover_generated=False)


def test_failed_chapter_returns_to_outline(wizard, session):
    answer = session.routes["/api/generate_story/chapter"]
    session.routes["/api/generate_story/chapter"] = lambda body: (
        FakeResponse(500, {"error": "Failed to generate chapter content"}) if body["chapterNumber"] == 3 else answer(body)
    )
    submit(wizard)

    step = wizard.approve()

    assert isinstance(step, OutlineStep)
    assert "Chapter 3" in step.error
    assert "/api/generate_cover_image" not in session.paths()


def test_chapter_answer_without_chapter_returns_to_outline(wizard, session):
    answer = session.routes["/api/generate_story/chapter"]
    session.routes["/api/generate_story/chapter"] = lambda body: (
        FakeResponse(200, {"success": True}) if body["chapterNumber"] == 2 else answer(body)
    )
    submit(wizard)

    step = wizard.approve()

    assert isinstance(step, OutlineStep)
    assert "Chapter 2" in step.error
    assert "/api/generate_cover_image" not in session.paths()


def test_generating_step_counts_chapters(wizard, session):
    seen = []
    answer = session.routes["/api/generate_story/chapter"]

    def record(body):
        seen.append(wizard.step)
        return answer(body)

    session.routes["/api/generate_story/chapter"] = record
    submit(wizard)
    wizard.approve()

    assert all(isinstance(step, GeneratingStep) for step in seen)
    assert seen[0].total_chapters == 5
    assert seen[0].completed_chapters == 5


def test_approve_from_form_is_refused(wizard):
    with pytest.raises(WizardError):
        wizard.approve()
