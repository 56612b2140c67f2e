"""
Prompt construction for note generation.

``build_prompt`` is a pure function: the same (topic, template, pages) always
yields the same prompt text, which keeps retries and tests meaningful.
"""

from typing import Any, List

from .pricing import normalize_page_count
from .templates import NoteTemplate, get_template

WORDS_PER_PAGE_MIN = 400
WORDS_PER_PAGE_MAX = 600
SINGLE_PAGE_WORDS = (500, 700)


def _plural(page_count: int) -> str:
    return f"{page_count} page{'s' if page_count > 1 else ''}"


def _structural_contract(topic: str) -> List[str]:
    return [
        "**CRITICAL OUTPUT CONTRACT - FOLLOW EXACTLY OR THE TASK FAILS:**",
        "1. Your entire response MUST be a single HTML document. Start with `<!DOCTYPE html>` and end with `</html>`.",
        "2. Do NOT wrap the document in markdown code fences. Do NOT add explanations or any text outside the `<html>` element.",
        "3. The document must be self-contained: all CSS in one `<style>` tag inside `<head>`, no external stylesheets or scripts.",
        "4. Any Google Fonts `@import` rule must be the first line of the `<style>` block.",
        f"5. Every piece of content must relate directly to \"{topic}\". No generic filler or unrelated examples.",
    ]


def _template_rules(template: NoteTemplate) -> List[str]:
    lines = [
        f"**MANDATORY TEMPLATE: {template.name}** - {template.description}.",
        template.emphasis,
        f"Accent palette (use as guidance for colors): {', '.join(template.colors)}.",
        "Layout rules:",
    ]
    lines.extend(f"- {rule}" for rule in template.instructions)
    return lines


def _distribution_rules(page_count: int) -> List[str]:
    if page_count <= 1:
        low, high = SINGLE_PAGE_WORDS
        return [f"Write {low}-{high} words of content on a single page."]

    return [
        "**MULTI-PAGE REQUIREMENTS:**",
        f"- Create exactly {page_count} pages, each as a separate section with a clear visual page break.",
        "- Each page continues naturally from the previous one and keeps the same styling.",
        f"- CRITICAL: distribute content EVENLY across all {page_count} pages; every page must be equally full and dense.",
        f"- Each page should contain roughly {WORDS_PER_PAGE_MIN}-{WORDS_PER_PAGE_MAX} words "
        f"({page_count * WORDS_PER_PAGE_MIN}-{page_count * WORDS_PER_PAGE_MAX} words in total).",
        "- Leave no sparse or empty pages; balance visual elements equally across pages.",
    ]


def build_prompt(topic: str, template_id: str, page_count: Any) -> str:
    """Build the generation prompt for a note.

    Args:
        topic: Trimmed, non-empty topic (validated by the caller)
        template_id: Template id; unknown ids use the default template
        page_count: Requested pages; out-of-range values become 1

    Returns:
        Prompt text
    """
    template = get_template(template_id)
    pages = normalize_page_count(page_count)

    sections = [
        [
            "You are a master visual note-taker and graphic designer, using HTML and CSS as your medium.",
            f"Generate a single, self-contained HTML document with notes about \"{topic}\" "
            f"across {_plural(pages)}.",
        ],
        _structural_contract(topic),
        _template_rules(template),
        _distribution_rules(pages),
        [
            f"Now generate the complete HTML document for \"{topic}\" with exactly {_plural(pages)} "
            f"in the {template.name} style.",
        ],
    ]
    return "\n\n".join("\n".join(section) for section in sections) + "\n"
