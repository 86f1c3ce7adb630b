import base64
import json
from dataclasses import dataclass, field
from typing import List

import requests
from flask import current_app, g
from openai import OpenAI

from prompt_templates import (
    OUTLINE_SYSTEM_PROMPT,
    CHAPTER_SYSTEM_PROMPT,
    IMAGE_PROMPT_SYSTEM_PROMPT
)

MIN_OUTLINE_CHAPTERS = 5
MAX_OUTLINE_CHAPTERS = 6
DEFAULT_IMAGE_PROMPT = "A colorful children's book illustration"


class GenerationError(Exception):
    """Raised when the model answers with nothing usable."""


class OutlineParseError(ValueError):
    """Raised when an outline is not valid JSON or does not have the expected shape."""


@dataclass
class ChapterOutline:
    chapter_number: int
    title: str
    summary: str

    def to_dict(self):
        return {"chapter_number": self.chapter_number, "title": self.title, "summary": self.summary}


@dataclass
class StoryOutline:
    title: str
    chapters: List[ChapterOutline] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data, fallback_title=""):
        """
        Validates a decoded outline and builds a typed result.

        Args:
            data (dict): The decoded outline, as produced by the model or echoed back by a client.
            fallback_title (str): Used when the outline carries no title of its own.

        Returns:
            StoryOutline: The validated outline, chapters numbered from 1 when the model omitted numbers.

        Raises:
            OutlineParseError: If the outline is not an object, lacks a chapter list, has fewer than
                5 or more than 6 chapters, or any chapter has an empty title or summary.
        """
        if not isinstance(data, dict):
            raise OutlineParseError("Outline must be a JSON object.")
        chapters = data.get("chapters")
        if not isinstance(chapters, list):
            raise OutlineParseError("Outline has no chapter list.")
        if not MIN_OUTLINE_CHAPTERS <= len(chapters) <= MAX_OUTLINE_CHAPTERS:
            raise OutlineParseError(
                f"Outline must have {MIN_OUTLINE_CHAPTERS}-{MAX_OUTLINE_CHAPTERS} chapters, got {len(chapters)}."
            )
        parsed = []
        for index, chapter in enumerate(chapters, start=1):
            if not isinstance(chapter, dict):
                raise OutlineParseError(f"Chapter {index} is not an object.")
            title = str(chapter.get("title") or "").strip()
            summary = str(chapter.get("summary") or "").strip()
            if not title or not summary:
                raise OutlineParseError(f"Chapter {index} is missing a title or summary.")
            try:
                number = int(chapter.get("chapter_number") or index)
            except (TypeError, ValueError):
                number = index
            parsed.append(ChapterOutline(chapter_number=number, title=title, summary=summary))
        title = str(data.get("title") or fallback_title).strip()
        return cls(title=title, chapters=parsed)

    @classmethod
    def from_json(cls, text, fallback_title=""):
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise OutlineParseError(f"Outline is not valid JSON: {e}") from e
        return cls.from_dict(data, fallback_title=fallback_title)

    def to_dict(self):
        return {"title": self.title, "chapters": [chapter.to_dict() for chapter in self.chapters]}


def get_client():
    """
    Returns the OpenAI client for the current request.

    The client is built from the application config on first use and kept on
    `flask.g`, so each request gets its own instance.
    """
    if "openai_client" not in g:
        g.openai_client = OpenAI(api_key=current_app.config.get("OPENAI_API_KEY"))
    return g.openai_client


def _usage_of(response, model):
    usage = getattr(response, "usage", None)
    return {
        "model": model,
        "input_tokens": getattr(usage, "prompt_tokens", 0) or 0,
        "output_tokens": getattr(usage, "completion_tokens", 0) or 0,
    }


def _chat(system_prompt, prompt, temperature, json_mode=False):
    model = current_app.config.get("TEXT_MODEL", "gpt-4o-mini")
    kwargs = {}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    response = get_client().chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt}
        ],
        temperature=temperature,
        **kwargs
    )
    content = response.choices[0].message.content if response.choices else None
    return (content or "").strip(), _usage_of(response, model)


def generate_outline_from_prompt(prompt, fallback_title=""):
    """
    Generates a chapter outline and validates its shape.

    Args:
        prompt (str): The outline prompt built by `build_outline_prompt`.
        fallback_title (str): Title to use when the model leaves it out.

    Returns:
        tuple: (StoryOutline, usage dict with 'model', 'input_tokens', 'output_tokens').

    Raises:
        GenerationError: If the model returns no content.
        OutlineParseError: If the content is not a valid 5-6 chapter outline.
    """
    text, usage = _chat(OUTLINE_SYSTEM_PROMPT, prompt, temperature=0.7, json_mode=True)
    if not text:
        raise GenerationError("Failed to generate outline")
    return StoryOutline.from_json(text, fallback_title=fallback_title), usage


def generate_chapter_content_from_prompt(prompt):
    text, usage = _chat(CHAPTER_SYSTEM_PROMPT, prompt, temperature=0.8)
    if not text:
        raise GenerationError("Failed to generate chapter content")
    return text, usage


def generate_image_prompt_from_prompt(prompt):
    """Asks for an illustration description; an empty answer falls back to a generic prompt."""
    text, usage = _chat(IMAGE_PROMPT_SYSTEM_PROMPT, prompt, temperature=0.7)
    return text or DEFAULT_IMAGE_PROMPT, usage


def generate_image_from_prompt(prompt, size="1024x1024"):
    """
    Generates one square image and returns its bytes.

    The model may answer with a hosted URL or inline base64; either is turned
    into raw bytes here.

    Args:
        prompt (str): The text prompt to generate the image from.
        size (str, optional): The desired size of the generated image. Defaults to "1024x1024".

    Returns:
        tuple: (image bytes, model name).

    Raises:
        GenerationError: If no image came back or the hosted image could not be fetched.
    """
    model = current_app.config.get("IMAGE_MODEL", "dall-e-3")
    response = get_client().images.generate(
        model=model,
        prompt=prompt,
        size=size,
        quality="standard",
        n=1
    )
    if not response.data:
        raise GenerationError("No image generated")
    image = response.data[0]
    if getattr(image, "url", None):
        image_response = requests.get(image.url)
        if not image_response.ok:
            raise GenerationError("Failed to fetch generated image")
        return image_response.content, model
    if getattr(image, "b64_json", None):
        return base64.b64decode(image.b64_json), model
    raise GenerationError("No image data received from OpenAI")
