import json
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from ..config import DEFAULT_PREAMBLE
from ..schemas import FormQuestion, FormStructure, GeneratedImage, HistoryTurn, StyleGuide
from ..utils import split_data_url


HISTORY_WINDOW = 10


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ImagePart:
    mime_type: str
    data: str


Part = Union[TextPart, ImagePart]


IMAGE_TOOL = {
    "name": "generate_image",
    "description": (
        "Generate an AI image to use in the form design. Call this when an image would enhance the form, "
        "for example a header banner, background image, or accent image. Do not call this for simple "
        "surveys or internal forms that don't benefit from images."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "prompt": {
                "type": "string",
                "description": (
                    "Detailed image generation prompt. Be specific about style, mood, composition, and subject. "
                    "Never request text/words/letters in the image."
                ),
            },
            "imageType": {
                "type": "string",
                "enum": ["background", "header", "accent"],
                "description": (
                    "How this image will be used: 'background' for full-page/section backgrounds (subtle, "
                    "low-contrast), 'header' for top banner images (visually striking), 'accent' for "
                    "decorative/content images."
                ),
            },
            "colorPalette": {
                "type": "string",
                "description": (
                    "Dominant colors the image should use, so you can match form colors to complement it. "
                    "E.g. 'warm oranges, soft yellows, cream'."
                ),
            },
            "aspectRatio": {
                "type": "string",
                "description": "Desired aspect ratio. Use '16:9' for headers, '1:1' for accent images, or 'flexible' for backgrounds.",
            },
        },
        "required": ["prompt", "imageType", "colorPalette", "aspectRatio"],
    },
}


_RULES = """You will be given a Google Form structure and a styling request. Your job is to output a COMPLETE, SELF-CONTAINED HTML page that renders the form with the requested visual design.

CRITICAL - PRESERVE FORM CONTENT EXACTLY:
- Do NOT change the form title, description, question text, question types, or answer options. These must appear in the generated HTML exactly as they are in the structure JSON.
- A dropdown must stay a dropdown, a checkbox must stay a checkbox, a multiple_choice must stay radio buttons, etc. Never convert one question type to another.
- Option values must match the structure JSON character-for-character. Do not rephrase, reformat, or embellish option text.
- You are only allowed to change the VISUAL STYLING and LAYOUT, never the content or behaviour of the form fields.

RULES - you must follow all of these:
1. Output ONLY raw HTML. No markdown, no code fences, no explanation. The very first character of your response must be "<" and the last must be ">".
2. All CSS must be inline in a single <style> tag inside <head>. No external stylesheets.
3. All JavaScript must be inline in a single <script> tag. No external scripts.
4. Every form input must use the exact name attribute provided (e.g. name="entry.1234567890"). These are critical for routing responses correctly.
5. The form must submit via JavaScript fetch POST to: {submit_url}
   Send JSON body: an object mapping each entry.XXXXXXXXX name to its value.
   For checkbox questions where multiple options can be selected, send the value as an array of strings (e.g. ["Option A", "Option B"]).
   On success show a thank-you message. On error show a friendly error message.
   If you generate a multi-step form, collect ALL field values across ALL steps before submitting. Never submit with missing or empty values from earlier steps.
6. The form must be fully responsive and work on mobile.
7. Render ALL questions from the structure in order. Do not skip any. Always render the form title and description at the top.
8. For required fields, add visible indication and client-side validation before submit. Only mark a field as required if its "required" property is true in the structure JSON. If a question has "required": false, it MUST remain optional: do not add required attributes, asterisks, or validation to optional fields.
9. For linear_scale questions, render them as a single horizontal row of numbered radio buttons. The min label appears below the lowest number and the max label appears below the highest number. Labels and numbers must be aligned in one clean row. Never stack them vertically or misalign them.
10. If generating a multi-step form with a review page, the review page must display the actual values the user entered, not placeholder text like "No answer provided".
11. The page must always fill the full viewport (min-height: 100vh) with a background colour. Never leave a plain white or transparent background. Choose a colour that fits the requested style.
12. QUESTION-BY-QUESTION LAYOUT RULES (apply whenever showing one question per step):
    a. The final step MUST always be a review page that shows every answer the user gave before they submit. There are no exceptions: never skip the review step.
    b. For questions that accept only a SINGLE selection (multiple_choice, dropdown, linear_scale), automatically advance to the next step as soon as the user makes their selection. Do NOT wait for a "Next" button click for these question types.
    c. When auto-advance is active on a step, display a small helper text beneath the question (e.g. "Select an option to continue") so the respondent knows the form will move forward automatically.
    d. Questions that accept multiple selections or free entry (checkboxes, short_answer, paragraph, date, time) must still use an explicit "Next" button. Do not auto-advance these.
    e. Pressing the Enter key on any step must advance the user to the next step (same as clicking "Next"). For steps with auto-advance (rule 12b), Enter should also trigger the advance. Exception: do not intercept Enter inside a <textarea> (paragraph questions); allow normal line-break behaviour there.
    f. Every step after the first must include a "Back" button that returns the user to the previous step. The review page must also have a Back button. Only the very first question step should have no Back button."""


_IMAGE_GUIDELINES = """IMAGE GENERATION GUIDELINES (when the generate_image tool is available):
- You have access to a generate_image tool that creates AI images for the form.
- Decide whether images would genuinely enhance this form. Good candidates: event registrations, creative/branded forms, themed forms. Poor candidates: simple internal surveys, feedback forms, plain data collection.
- If you decide images would help, call generate_image with a detailed, specific prompt. Describe the style, mood, subject, and composition. Never request text/words/letters in images.
- You can call generate_image multiple times for different image types (e.g. one header + one background).
- After receiving generated images, you will see them as vision input. Use the actual colors in the image to pick complementary form colors (background, text, buttons, borders) for visual coherence.
- For background images: use CSS background-image with background-size: cover. Always add a semi-transparent overlay so form text remains readable.
- For header images: place at the top with appropriate height (200-300px), use object-fit: cover, make it responsive.
- For accent images: size appropriately and position to support the form theme without overwhelming the content.
- Reference generated images by their returned URL in the HTML."""


_NO_IMAGES = """IMAGE RULES:
- Do NOT include any images in the form. Do not use <img> tags, background-image CSS, or any external image URLs. The form should be styled with colors, gradients, and CSS only."""


def _render_hint(question: FormQuestion) -> str:
    if question.kind == "checkboxes":
        return "checkboxes (multiple selections allowed)"
    if question.kind == "dropdown":
        return "a <select> dropdown (single selection)"
    if question.kind == "multiple_choice":
        return "radio buttons (single selection)"
    return question.kind


def type_summary(structure: FormStructure) -> str:
    return "\n".join(
        f'  {i}. "{q.text}" -> type: {q.kind} (render as {_render_hint(q)})'
        for i, q in enumerate(structure.questions, start=1)
    )


def build_system_prompt(structure: FormStructure, submit_url: str, include_images: bool = False, preamble: Optional[str] = None) -> str:
    sections = [
        preamble or DEFAULT_PREAMBLE,
        _RULES.format(submit_url=submit_url),
        _IMAGE_GUIDELINES if include_images else _NO_IMAGES,
        "The form structure is:\n" + json.dumps(structure.to_wire(), indent=2, ensure_ascii=False),
        "REMINDER - Each question's \"type\" field above is AUTHORITATIVE. Here is a summary for quick reference:\n"
        + type_summary(structure)
        + "\nDo NOT swap, change, or reinterpret any of these types.",
    ]
    return "\n\n".join(sections)


def recent_history(history: Sequence[HistoryTurn]) -> List[HistoryTurn]:
    return list(history[-HISTORY_WINDOW:]) if history else []


def image_part(value: str) -> ImagePart:
    mime_type, data = split_data_url(value)
    return ImagePart(mime_type=mime_type, data=data)


def prompt_text(prompt: str, previous_html: str = "") -> str:
    if previous_html:
        return (
            f"Current form HTML:\n{previous_html}\n\n"
            f"Creator request: {prompt}\n\n"
            "Update the form to fulfil this request. Return the complete updated HTML page."
        )
    return f"Creator request: {prompt}\n\nGenerate the complete HTML page for this form."


def build_message_parts(
    prompt: str,
    previous_html: str = "",
    screenshot: Optional[str] = None,
    style_guide: Optional[StyleGuide] = None,
    active_images: Optional[Sequence[GeneratedImage]] = None,
) -> List[Part]:
    """Assemble the user message of one turn.

    Order: style guide, active images (caller order), region screenshot, then
    exactly one prompt text part. The model relies on each image being
    immediately followed by the text that explains it.
    """
    parts: List[Part] = []

    if style_guide is not None and style_guide.image_base64:
        parts.append(image_part(style_guide.image_base64))
        focus = f" Focus specifically on: {style_guide.focus_note}." if style_guide.focus_note else ""
        parts.append(TextPart(
            f"Use the visual style of the image above as a reference only.{focus} Do not embed the image in the form."
        ))

    for img in active_images or ():
        parts.append(ImagePart(mime_type=img.mime_type, data=img.data))
        parts.append(TextPart(
            f"This is an existing {img.kind} image currently used in the form (URL: {img.url}). "
            "You can keep it, replace it, or remove it as needed."
        ))

    if screenshot:
        parts.append(image_part(screenshot))
        parts.append(TextPart("The image above is a screenshot of the region the creator wants changed."))

    parts.append(TextPart(prompt_text(prompt, previous_html)))
    return parts


def vision_follow_up(image: GeneratedImage) -> List[Part]:
    return [
        ImagePart(mime_type=image.mime_type, data=image.data),
        TextPart(
            f"Above is the generated {image.kind} image. Its URL is: {image.url}. Use this exact URL in the HTML. "
            "Pick form colors that complement this image."
        ),
    ]
