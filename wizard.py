"""Client side of story creation.

`StoryWizard` walks a user through the four steps of making a book against
the HTTP API: fill in the form, review and edit the outline, wait while the
chapters and cover are generated, and finish. `wizard.step` is always exactly
one of the step classes below.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Optional

import requests

from openai_handler import StoryOutline

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 120


class WizardError(Exception):
    """Raised for an API call that failed or an action taken on the wrong step."""


@dataclass
class FormStep:
    error: Optional[str] = None
    needs_upgrade: bool = False


@dataclass
class OutlineStep:
    form: dict
    outline: StoryOutline
    user_input_id: int
    error: Optional[str] = None


@dataclass
class GeneratingStep:
    story_id: int
    total_chapters: int
    completed_chapters: int = 0
    current_task: str = ""


@dataclass
class CompleteStep:
    story_id: int
    cover_generated: bool = False


@dataclass
class ChapterResult:
    chapter_number: int
    chapter: Optional[dict] = None
    error: Optional[str] = None


class StoryWizard:
    def __init__(self, base_url, token=None, session=None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        self.step = FormStep()
        self.chapters = []

    def _post(self, path, payload):
        """
        Sends one JSON request and returns the decoded body.

        Raises:
            WizardError: On a transport failure or a non-2xx answer. The decoded
                error body, if any, is attached as `body`.
        """
        try:
            response = self.session.post(f"{self.base_url}{path}", json=payload, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise WizardError(str(e)) from e
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if not response.ok:
            error = WizardError(body.get("error") or f"Request failed with status {response.status_code}")
            error.status_code = response.status_code
            error.body = body
            raise error
        return body

    def _require(self, step_type):
        if not isinstance(self.step, step_type):
            raise WizardError(f"Not allowed while on {type(self.step).__name__}")
        return self.step

    def submit_form(self, title, age_group, plot, characters):
        """
        Submits the story form and moves to the outline step.

        A free account at its limit lands back on the form with
        `needs_upgrade` set; any other failure lands back on the form with the
        error message.

        Returns:
            The new step.
        """
        form = {"title": title, "ageGroup": age_group, "plot": plot, "characters": characters}
        missing = [name for name, value in form.items() if not (value or "").strip()]
        if missing:
            self.step = FormStep(error=f"Please fill in: {', '.join(missing)}")
            return self.step
        try:
            body = self._post("/api/generate_outline", form)
        except WizardError as e:
            needs_upgrade = getattr(e, "status_code", None) == 403 and bool(getattr(e, "body", {}).get("needsUpgrade"))
            self.step = FormStep(error=str(e), needs_upgrade=needs_upgrade)
            return self.step
        self.step = OutlineStep(
            form=form,
            outline=StoryOutline.from_dict(body["outline"], fallback_title=title),
            user_input_id=body["userInputId"]
        )
        return self.step

    def update_chapter_title(self, index, title):
        self._require(OutlineStep).outline.chapters[index].title = title

    def update_chapter_summary(self, index, summary):
        self._require(OutlineStep).outline.chapters[index].summary = summary

    def _generate_chapter(self, story_id, task, is_last):
        body = self._post("/api/generate_story/chapter", {
            "storyId": story_id,
            "chapterNumber": task["chapterNumber"],
            "title": task["title"],
            "summary": task["summary"],
            "userInput": task["userInput"],
            "isLastChapter": is_last
        })
        chapter = body.get("chapter")
        if not isinstance(chapter, dict):
            raise WizardError(f"Chapter {task['chapterNumber']} response had no chapter")
        return chapter

    def _generate_all_chapters(self, story_id, tasks):
        results = []
        with ThreadPoolExecutor(max_workers=len(tasks)) as executor:
            future_to_number = {
                executor.submit(self._generate_chapter, story_id, task, index == len(tasks) - 1): task["chapterNumber"]
                for index, task in enumerate(tasks)
            }
            for future in as_completed(future_to_number):
                number = future_to_number[future]
                try:
                    results.append(ChapterResult(number, chapter=future.result()))
                except WizardError as e:
                    logger.error(f"Chapter {number} of story {story_id} failed: {e}")
                    results.append(ChapterResult(number, error=str(e)))
                self.step.completed_chapters += 1
        return sorted(results, key=lambda result: result.chapter_number)

    def approve(self):
        """
        Approves the outline and generates the book.

        Every chapter request is started at once and all of them are awaited
        before anything else happens. If any chapter fails the wizard returns
        to the outline step with the error. The cover is requested last; if it
        fails the book is still complete, just without a cover.

        Returns:
            The new step.
        """
        outline_step = self._require(OutlineStep)
        outline_step.error = None
        form = outline_step.form
        try:
            body = self._post("/api/generate_story", {
                "userInputId": outline_step.user_input_id,
                "outline": outline_step.outline.to_dict()
            })
        except WizardError as e:
            outline_step.error = str(e)
            return outline_step

        story_id = body["storyId"]
        tasks = body["chapterTasks"]
        self.step = GeneratingStep(story_id=story_id, total_chapters=len(tasks), current_task="Writing chapters")
        results = self._generate_all_chapters(story_id, tasks)
        failed = [result for result in results if result.error]
        if failed:
            outline_step.error = f"Chapter {failed[0].chapter_number} failed: {failed[0].error}"
            self.step = outline_step
            return self.step
        self.chapters = [result.chapter for result in results]

        self.step.current_task = "Painting the cover"
        cover_generated = True
        try:
            self._post("/api/generate_cover_image", {
                "title": form["title"],
                "ageGroup": form["ageGroup"],
                "characters": form["characters"],
                "plot": form["plot"],
                "storyId": story_id
            })
        except WizardError as e:
            logger.warning(f"Cover generation for story {story_id} failed: {e}")
            cover_generated = False

        self.step = CompleteStep(story_id=story_id, cover_generated=cover_generated)
        return self.step

    def reset(self):
        self.step = FormStep()
        self.chapters = []
