AGE_GUIDELINES = {
    "0-2": "Use very simple words, short sentences (3-5 words), repetitive sounds, and focus on basic concepts like colors, shapes, and familiar objects. Include lots of sensory descriptions.",
    "3-5": "Use simple vocabulary, short paragraphs, and clear moral lessons. Include interactive elements and predictable patterns. Focus on friendship, sharing, and basic emotions.",
    "6-8": "Use more complex vocabulary while remaining accessible, longer paragraphs, and include problem-solving elements. Can include mild adventure and more detailed character development."
}

AGE_COVER_STYLES = {
    "0-2": "bright primary colors, simple shapes, very cute and friendly style, board book illustration style, chunky characters",
    "3-5": "vibrant colors, cartoon style, whimsical and magical, picture book illustration, friendly characters with big expressions",
    "6-8": "detailed illustration, adventure book style, dynamic composition, chapter book cover style, more sophisticated character design"
}

DEFAULT_COVER_STYLE = "colorful, friendly picture book illustration"

OUTLINE_SYSTEM_PROMPT = "You are a professional children's book author who creates engaging story outlines. Always respond with valid JSON."
CHAPTER_SYSTEM_PROMPT = "You are a professional children's book author who creates engaging, educational, and age-appropriate story chapters. Your stories are imaginative, positive, and include valuable life lessons."
IMAGE_PROMPT_SYSTEM_PROMPT = "You are an expert at creating detailed image prompts for children's book illustrations. Create vivid, colorful, child-friendly descriptions."

# characters of chapter prose handed to the illustration prompt
CHAPTER_EXCERPT_LENGTH = 500


def build_outline_prompt(title, age_group, characters, plot):
    """
    Generates the prompt asking for a 5-6 chapter outline of a children's book.

    Args:
        title (str): The title of the story.
        age_group (str): Target reader age group, e.g. "3-5".
        characters (str): Free text describing the main characters.
        plot (str): Free text describing the plot.

    Returns:
        str: A prompt requesting a JSON object with a 'chapters' array.
    """
    template = (
        "Create a story outline for a children's book with the following details:\n\n"
        "Title: {title}\n"
        "Age Group: {age_group}\n"
        "Main Characters: {characters}\n"
        "Plot: {plot}\n\n"
        "{guidelines}"
        "Create exactly 5-6 chapter outlines. For each chapter, provide:\n"
        "1. A catchy chapter title (3-8 words)\n"
        "2. A one-line summary (10-15 words describing what happens)\n\n"
        "Format your response as a JSON object like this:\n"
        "{{\n"
        "  \"title\": \"{title}\",\n"
        "  \"chapters\": [\n"
        "    {{\n"
        "      \"chapter_number\": 1,\n"
        "      \"title\": \"Chapter Title\",\n"
        "      \"summary\": \"One line summary of what happens in this chapter.\"\n"
        "    }}\n"
        "  ]\n"
        "}}\n\n"
        "Make sure the story flows well from chapter to chapter and includes a clear beginning, middle, "
        "and satisfying conclusion appropriate for the age group."
    )
    guidelines = AGE_GUIDELINES.get(age_group)
    guidelines = f"Guidelines for age {age_group}: {guidelines}\n\n" if guidelines else ""
    return template.format(title=title, age_group=age_group, characters=characters, plot=plot, guidelines=guidelines)


def build_chapter_content_prompt(user_input, chapter_number, title, summary):
    """
    Generates the prompt for one chapter of prose in a fixed, energetic narrative voice.

    Args:
        user_input (dict): The creative brief with 'ageGroup', 'characters' and 'plot'.
        chapter_number (int): The position of the chapter in the outline.
        title (str): The chapter title.
        summary (str): The one-line chapter summary from the outline.

    Returns:
        str: A prompt for 200-300 words of chapter text.
    """
    template = (
        "Write a children's book chapter in the style of *Geronimo Stilton*. The chapter should be energetic, "
        "filled with quirky characters, humorous narration, and expressive language.\n\n"
        "Story Details:\n"
        "- Age Group: {age_group}\n"
        "- Main Characters: {characters}\n"
        "- Overall Plot: {plot}\n\n"
        "Chapter Details:\n"
        "- Chapter {chapter_number}: {title}\n"
        "- Chapter Summary: {summary}\n\n"
        "Requirements:\n"
        "- Chapter length should be 200-300 words\n"
        "- Make it dynamic, fast-paced, and funny\n"
        "- Include vivid imagery and exciting sound words (like ZOOM! SPLAT! WHOOSH!)\n"
        "- Use playful emphasis where appropriate (like THIS or *that*)\n"
        "- Narrator should have a strong, fun personality\n"
        "- End with a smooth transition to keep readers engaged\n\n"
        "Write the complete chapter content."
    )
    return template.format(
        age_group=user_input.get("ageGroup"),
        characters=user_input.get("characters"),
        plot=user_input.get("plot"),
        chapter_number=chapter_number,
        title=title,
        summary=summary
    )


def build_chapter_image_prompt(title, chapter_content, age_group):
    excerpt = chapter_content[:CHAPTER_EXCERPT_LENGTH]
    template = (
        "Create a detailed image prompt for an illustration for this chapter:\n\n"
        "Chapter Title: {title}\n"
        "Chapter Content: {excerpt}...\n\n"
        "The image should be:\n"
        "- Child-friendly and colorful\n"
        "- In a cartoon/illustration style\n"
        "- Show the main characters and key scene from this chapter\n"
        "- Engaging for children aged {age_group}\n\n"
        "Provide a detailed prompt (2-3 sentences) that an AI image generator could use."
    )
    return template.format(title=title, excerpt=excerpt, age_group=age_group)


def build_cover_prompt(title, age_group, characters, plot):
    """
    Generates the prompt for a square, text-free book cover illustration styled for the age group.

    Args:
        title (str): The title of the story.
        age_group (str): Target reader age group; unknown groups get a neutral style.
        characters (str): Free text describing the main characters.
        plot (str): Free text describing the plot.

    Returns:
        str: The image generation prompt.
    """
    style = AGE_COVER_STYLES.get(age_group, DEFAULT_COVER_STYLE)
    template = (
        "Create a beautiful children's book cover illustration for \"{title}\".\n\n"
        "Story details:\n"
        "- Characters: {characters}\n"
        "- Plot: {plot}\n"
        "- Age group: {age_group}\n\n"
        "Style requirements for age {age_group}: {style}\n\n"
        "Cover design specifications:\n"
        "- Professional children's book cover illustration\n"
        "- Include the main characters prominently\n"
        "- Show a scene that captures the essence of the story\n"
        "- Child-friendly and appealing to both kids and parents\n"
        "- High quality, publishable illustration style\n"
        "- Warm, inviting, and engaging composition\n"
        "- No text or title on the image (just the illustration)\n"
        "- Safe and appropriate content for children\n\n"
        "Make it look like a professional children's book cover that would stand out on a bookshelf."
    )
    return template.format(title=title, characters=characters, plot=plot, age_group=age_group, style=style)
