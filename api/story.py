import io
import requests
from flask import Blueprint, current_app, request, jsonify, send_file
from helpers import get_current_user, get_json_body, is_authenticated
from models import Story
from exports import build_pdf, build_epub, export_filename
from pagination import BookViewer, split_story_into_pages

bp = Blueprint('story', __name__)

COVER_FETCH_TIMEOUT = 10

def _owned_story(story_id):
    return Story.owned_by(get_current_user().id).filter_by(id=story_id).first()

def _fetch_cover(story):
    """Downloads the cover for an export; the export goes ahead without it on any failure."""
    if not story.cover_image:
        return None
    try:
        response = requests.get(story.cover_image, timeout=COVER_FETCH_TIMEOUT)
        if response.ok:
            return response.content
        current_app.logger.warning(f"Cover fetch for story {story.id} returned {response.status_code}")
    except requests.RequestException as e:
        current_app.logger.warning(f"Cover fetch for story {story.id} failed: {e}")
    return None

def _export_story_id():
    data = get_json_body()
    return data.get("storyId")

@bp.route('/api/stories', methods=["GET"])
@is_authenticated
def list_stories():
    user = get_current_user()
    stories = Story.owned_by(user.id).order_by(Story.created_at.desc()).all()
    return jsonify({"stories": [story.to_dict() for story in stories]})

@bp.route('/api/stories/<int:story_id>', methods=["GET"])
@is_authenticated
def get_story(story_id):
    story = _owned_story(story_id)
    if not story:
        return jsonify({"error": "Story not found"}), 404
    return jsonify(story.to_dict(include_chapters=True))

@bp.route('/api/stories/<int:story_id>/pages', methods=["GET"])
@is_authenticated
def story_pages(story_id):
    """
	Returns the pages of the book viewer that are on screen.

    Query args: `view` is "single" (default) or "spread", `page` is the
    current page number with 0 being the cover. Out of range pages are
    clamped. Blank spread slots are returned as null.

    Returns:
        Response: JSON with the current page, the visible pages and the
        navigation targets, or 404 if the story is not the caller's.
    """
    story = _owned_story(story_id)
    if not story:
        return jsonify({"error": "Story not found"}), 404
    view = request.args.get("view", "single")
    if view not in ("single", "spread"):
        return jsonify({"error": "view must be 'single' or 'spread'"}), 400

    pages = split_story_into_pages(story.chapters)
    viewer = BookViewer(len(pages), two_page=view == "spread")
    current = viewer.clamp(request.args.get("page", 0, type=int))

    visible = []
    for number in viewer.visible_pages(current):
        if number is None:
            visible.append(None)
        elif number == 0:
            visible.append({"pageNumber": 0, "cover": True, "title": story.title, "coverImage": story.cover_image})
        else:
            visible.append({"pageNumber": number, "cover": False, "text": pages[number - 1]})

    return jsonify({
        "storyId": story.id,
        "view": view,
        "currentPage": current,
        "totalPages": viewer.total_pages,
        "pages": visible,
        "prevPage": viewer.prev_page(current) if viewer.can_go_prev(current) else None,
        "nextPage": viewer.next_page(current) if viewer.can_go_next(current) else None
    })

@bp.route('/api/export_pdf', methods=["POST"])
@is_authenticated
def export_pdf():
    story_id = _export_story_id()
    if story_id is None:
        return jsonify({"error": "Missing storyId"}), 400
    story = _owned_story(story_id)
    if not story:
        return jsonify({"error": "Story not found"}), 404

    user = get_current_user()
    pdf_data = build_pdf(story.title, story.chapters, author=user.name or user.email, cover_image=_fetch_cover(story))
    current_app.logger.info(f"Exported story {story.id} as PDF")
    return send_file(
        io.BytesIO(pdf_data),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=export_filename(story.title, "pdf")
    )

@bp.route('/api/export_epub', methods=["POST"])
@is_authenticated
def export_epub():
    """
	Exports a story as an EPUB download.

    Chapters are written in chapter order, the cover is embedded when it can
    be fetched, and the file is named after the story title with every
    character outside [a-zA-Z0-9] replaced by an underscore.

    Returns:
        Response: The EPUB as an attachment, 400 without a storyId, 404 if the
        story is not the caller's, 500 if the book could not be built.
    """
    story_id = _export_story_id()
    if story_id is None:
        return jsonify({"error": "Missing storyId"}), 400
    story = _owned_story(story_id)
    if not story:
        return jsonify({"error": "Story not found"}), 404

    user = get_current_user()
    try:
        epub_data = build_epub(story.title, story.chapters, author=user.name, cover_image=_fetch_cover(story))
    except Exception as e:
        current_app.logger.error(f"EPUB export of story {story.id} failed: {e}")
        return jsonify({"error": "Failed to generate EPUB"}), 500

    current_app.logger.info(f"Exported story {story.id} as EPUB")
    return send_file(
        io.BytesIO(epub_data),
        mimetype="application/epub+zip",
        as_attachment=True,
        download_name=export_filename(story.title, "epub")
    )
