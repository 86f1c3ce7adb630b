import time
import uuid
from flask import Blueprint, current_app, jsonify
from helpers import get_current_user, get_json_body, is_authenticated, log_generation, missing_fields, put_image
from models import Story, Chapter, UserInput, db
from openai_handler import (
    GenerationError,
    OutlineParseError,
    StoryOutline,
    generate_outline_from_prompt,
    generate_chapter_content_from_prompt,
    generate_image_prompt_from_prompt,
    generate_image_from_prompt
)
from prompt_templates import (
    build_outline_prompt,
    build_chapter_content_prompt,
    build_chapter_image_prompt,
    build_cover_prompt
)
from usage import check_story_limit, increment_story_count

bp = Blueprint('generation', __name__)

COVER_SIZE = "1024x1024"

def _limit_reached(usage):
    return jsonify({
        "error": "Story limit reached. Upgrade to Pro for unlimited stories.",
        "plan": usage.plan,
        "remaining": usage.remaining,
        "needsUpgrade": True
    }), 403

def _record_failure(user_id, generation_type, error):
    log_generation(user_id, generation_type, status="failed", error_message=str(error))
    db.session.commit()

@bp.route('/api/generate_outline', methods=["POST"])
@is_authenticated
def generate_outline():
    """
	Generates a 5-6 chapter outline for a new story.

    The request body must carry `title`, `ageGroup`, `plot` and `characters`.
    The caller's plan is checked before anything is written: a free account at
    its story limit gets a 403 with `needsUpgrade` and no model call is made.
    Otherwise the form is saved as a `UserInput` row and the model is asked
    for a JSON outline, which is validated before it is returned.

    Returns:
        Response: JSON with `success`, the `outline` and the `userInputId`;
        400 for missing fields, 403 at the plan limit, 500 if the model output
        is empty or not a valid outline.
    """
    user = get_current_user()
    data = get_json_body()
    missing = missing_fields(data, "title", "ageGroup", "plot", "characters")
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400

    usage = check_story_limit(user.id)
    if not usage.can_generate:
        return _limit_reached(usage)

    user_input = UserInput(
        user_id=user.id,
        title=data["title"],
        age_group=data["ageGroup"],
        plot=data["plot"],
        characters=data["characters"]
    )
    db.session.add(user_input)
    db.session.commit()

    prompt = build_outline_prompt(data["title"], data["ageGroup"], data["characters"], data["plot"])
    try:
        outline, token_usage = generate_outline_from_prompt(prompt, fallback_title=data["title"])
    except (GenerationError, OutlineParseError) as e:
        current_app.logger.error(f"Outline generation failed for user {user.id}: {e}")
        _record_failure(user.id, "outline", e)
        return jsonify({"error": str(e)}), 500

    log_generation(user.id, "outline", token_usage)
    db.session.commit()
    current_app.logger.info(f"Generated {len(outline.chapters)} chapter outline for user input {user_input.id}")
    return jsonify({
        "success": True,
        "outline": outline.to_dict(),
        "userInputId": user_input.id
    })

@bp.route('/api/generate_story', methods=["POST"])
@is_authenticated
def generate_story():
    """
	Approves an outline and creates the story it will be written into.

    The (possibly edited) outline is validated with the same rules as a
    generated one. The response lists one task per chapter, which the client
    sends to `/api/generate_story/chapter`, all at once.

    Returns:
        Response: JSON with `success`, `storyId` and `chapterTasks`; 400 for a
        missing or invalid outline, 404 for an unknown user input, 403 at the
        plan limit.
    """
    user = get_current_user()
    data = get_json_body()
    if data.get("userInputId") is None or data.get("outline") is None:
        return jsonify({"error": "Missing userInputId or outline"}), 400
    try:
        user_input_id = int(data["userInputId"])
    except (TypeError, ValueError):
        return jsonify({"error": "Invalid userInputId"}), 400

    user_input = UserInput.owned_by(user.id).filter_by(id=user_input_id).first()
    if not user_input:
        return jsonify({"error": "User input not found"}), 404
    try:
        outline = StoryOutline.from_dict(data["outline"], fallback_title=user_input.title)
    except OutlineParseError as e:
        return jsonify({"error": str(e)}), 400

    usage = check_story_limit(user.id)
    if not usage.can_generate:
        return _limit_reached(usage)

    story = Story(user_id=user.id, user_input_id=user_input.id)
    db.session.add(story)
    db.session.commit()
    current_app.logger.info(f"Created story {story.id} for user {user.id}")

    prompt_input = user_input.to_prompt_input()
    tasks = [{
        "chapterNumber": chapter.chapter_number,
        "title": chapter.title,
        "summary": chapter.summary,
        "userInput": prompt_input
    } for chapter in outline.chapters]
    return jsonify({"success": True, "storyId": story.id, "chapterTasks": tasks})

@bp.route('/api/generate_story/chapter', methods=["POST"])
@is_authenticated
def generate_chapter():
    """
	Writes one chapter of an approved story.

    Two model calls run in sequence: the chapter prose, then an illustration
    prompt drawn from the opening of that prose. The chapter is saved under
    the caller's story. When `isLastChapter` is set the caller's story count
    goes up by one; a failure there is logged and does not fail the chapter.

    Returns:
        Response: JSON with `success` and the saved `chapter`; 400 for missing
        fields, 404 if the story is not the caller's, 500 on empty model output.
    """
    user = get_current_user()
    data = get_json_body()
    missing = missing_fields(data, "storyId", "chapterNumber", "title", "summary", "userInput")
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400
    user_input = data["userInput"]
    if not isinstance(user_input, dict):
        return jsonify({"error": "userInput must be an object"}), 400
    try:
        story_id = int(data["storyId"])
        chapter_number = int(data["chapterNumber"])
    except (TypeError, ValueError):
        return jsonify({"error": "storyId and chapterNumber must be integers"}), 400

    story = Story.owned_by(user.id).filter_by(id=story_id).first()
    if not story:
        return jsonify({"error": "Story not found"}), 404

    try:
        content, content_usage = generate_chapter_content_from_prompt(
            build_chapter_content_prompt(user_input, chapter_number, data["title"], data["summary"])
        )
    except GenerationError as e:
        current_app.logger.error(f"Chapter {chapter_number} of story {story.id} failed: {e}")
        _record_failure(user.id, "chapter", e)
        return jsonify({"error": str(e)}), 500
    log_generation(user.id, "chapter", content_usage)

    image_prompt, prompt_usage = generate_image_prompt_from_prompt(
        build_chapter_image_prompt(data["title"], content, user_input.get("ageGroup"))
    )
    log_generation(user.id, "image_prompt", prompt_usage)

    chapter = Chapter(
        story_id=story.id,
        user_id=user.id,
        chapter_number=chapter_number,
        title=data["title"],
        content=content,
        image_prompt=image_prompt
    )
    db.session.add(chapter)
    db.session.commit()

    if data.get("isLastChapter"):
        try:
            increment_story_count(user.id)
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to increment story count for user {user.id}: {e}")

    return jsonify({"success": True, "chapter": chapter.to_dict()})

@bp.route('/api/generate_cover_image', methods=["POST"])
@is_authenticated
def generate_cover_image():
    """
	Generates a cover illustration and attaches it to a story.

    The image is drawn in the style of the story's age group, stored in the
    image bucket, and its public URL is written to the story. The update is
    scoped to the caller, so a story id that is not theirs changes nothing.

    Returns:
        Response: JSON with `success`, `imageUrl` and `fileName`; 400 for
        missing fields, 500 if the image could not be generated or stored.
    """
    user = get_current_user()
    data = get_json_body()
    missing = missing_fields(data, "title", "ageGroup", "characters", "plot", "storyId")
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400

    prompt = build_cover_prompt(data["title"], data["ageGroup"], data["characters"], data["plot"])
    file_name = f"cover-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.png"
    try:
        image_data, model = generate_image_from_prompt(prompt, size=COVER_SIZE)
        image_url = put_image(file_name, image_data)
    except Exception as e:
        current_app.logger.error(f"Cover generation failed for story {data['storyId']}: {e}")
        _record_failure(user.id, "cover", e)
        return jsonify({"error": str(e)}), 500

    updated = Story.owned_by(user.id).filter_by(id=data["storyId"]).update(
        {"cover_image": image_url}, synchronize_session=False
    )
    if not updated:
        current_app.logger.warning(f"Cover {file_name} not attached: story {data['storyId']} not owned by user {user.id}")
    log_generation(user.id, "cover", {"model": model})
    db.session.commit()
    return jsonify({"success": True, "imageUrl": image_url, "fileName": file_name})
