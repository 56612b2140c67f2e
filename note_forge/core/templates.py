"""
Visual template catalog.

Each template describes a visual style for the generated note. Colors are
hints passed to the generation service and are never parsed back.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

DEFAULT_TEMPLATE_ID = "study"


@dataclass(frozen=True)
class NoteTemplate:
    """A visual style the generated document must follow."""
    id: str
    name: str
    description: str
    emphasis: str
    colors: Tuple[str, ...]
    instructions: Tuple[str, ...]


TEMPLATES: Dict[str, NoteTemplate] = {
    "study": NoteTemplate(
        id="study",
        name="Study Guide",
        description="colorful hand-made study guide with scrapbook-style sections",
        emphasis="Create an engaging study guide with organic shapes, marker highlights and short focused sections.",
        colors=("#ff6b6b", "#feca57", "#48dbfb", "#1dd1a1", "#5f27cd", "#ff9ff3"),
        instructions=(
            "Use a main container with a slightly off-white, textured background.",
            "Lay sections out organically with CSS Grid or Flexbox and apply slight rotations (-2deg to 2deg).",
            "Give sections blob-like backgrounds using complex border-radius values.",
            "Simulate marker highlights on key terms with semi-transparent span backgrounds.",
            "Include at least one distinctively styled 'fun fact' or 'quote' box.",
        ),
    ),
    "summary": NoteTemplate(
        id="summary",
        name="Summary",
        description="concise one-glance summary with key takeaways",
        emphasis="Condense the topic into crisp key points, definitions and a closing takeaway box.",
        colors=("#2d3436", "#0984e3", "#00b894", "#fdcb6e", "#e17055"),
        instructions=(
            "Open with a one-paragraph overview under the title.",
            "Group key points into titled cards with short bullet lists.",
            "Close with a highlighted 'Key Takeaways' box of 3-5 items.",
        ),
    ),
    "notebook": NoteTemplate(
        id="notebook",
        name="Notebook",
        description="clean page with natural handwriting",
        emphasis="Create simple notes with natural handwriting on plain white paper.",
        colors=("#2c3e50", "#34495e", "#7f8c8d"),
        instructions=(
            "Use handwriting Google Fonts such as 'Caveat' or 'Indie Flower'.",
            "Wrap each page in a div with class 'page' on a clean white background.",
            "Organize content with simple headings and paragraphs; no ruled lines.",
            "Keep the layout extremely simple so the notes read as if written by a person.",
        ),
    ),
    "mindmap": NoteTemplate(
        id="mindmap",
        name="Mind Map",
        description="visual connections and hierarchical information structure",
        emphasis="Create branching, tree-like structures with connecting lines and hierarchical organization.",
        colors=("#27ae60", "#2ecc71", "#3498db", "#9b59b6", "#e67e22", "#e74c3c"),
        instructions=(
            "Place the main topic in a large central node with 5-7 color-coded branches radiating outward.",
            "Connect all nodes with visible curved connectors, thicker for main branches.",
            "Decrease node size moving outward; keep node text to 3-5 keywords.",
            "Use a white or very light background with high-contrast text.",
            "Add a small legend explaining the color coding.",
        ),
    ),
    "flowchart": NoteTemplate(
        id="flowchart",
        name="Flowchart",
        description="step-by-step process flow with decision points",
        emphasis="Show the topic as an ordered process with clearly labelled steps, decisions and arrows.",
        colors=("#0f4c81", "#3e7cb1", "#81a4cd", "#f2a541", "#f08a4b"),
        instructions=(
            "Use rounded rectangles for steps and diamond shapes for decisions.",
            "Connect every shape with arrows showing the direction of flow.",
            "Number the steps and keep each step label under 12 words.",
            "Add a short explanation panel beside complex steps.",
        ),
    ),
    "timeline": NoteTemplate(
        id="timeline",
        name="Timeline",
        description="chronological layout perfect for historical topics",
        emphasis="Create a professional historical timeline with clear connections between events.",
        colors=("#3b82f6", "#2563eb", "#1d4ed8", "#1e40af", "#1e3a8a", "#172554"),
        instructions=(
            "Use a vertical timeline with a prominent central line.",
            "Alternate event cards on the left and right, each connected to the line by a visible connector.",
            "Give every event a date, a title and a concise description.",
            "Group events into eras with era headers, ordered top to bottom.",
            "Use a clean white background with no textures.",
        ),
    ),
    "comparison": NoteTemplate(
        id="comparison",
        name="Comparison Chart",
        description="side-by-side comparison of concepts",
        emphasis="Contrast the main aspects of the topic in aligned columns with clear similarities and differences.",
        colors=("#6c5ce7", "#a29bfe", "#00cec9", "#81ecec", "#fd79a8"),
        instructions=(
            "Use a table or aligned columns with one column per concept being compared.",
            "Give every row a criterion label in the first column.",
            "Mark similarities and differences with distinct colors or icons.",
            "Finish with a short verdict section summarizing when each option fits.",
        ),
    ),
    "medieval": NoteTemplate(
        id="medieval",
        name="Medieval Manuscript",
        description="medieval manuscript with ornate decorations and calligraphy",
        emphasis="Create an ancient manuscript look with ornate decorations, illuminated capitals, and calligraphy.",
        colors=("#8B4513", "#CD853F", "#A0522D", "#D2B48C", "#800000", "#DAA520"),
        instructions=(
            "Use a parchment-like background and a formal serif such as 'EB Garamond' or 'Cinzel'.",
            "Begin sections with illuminated drop capitals.",
            "Separate sections with ornate dividers and decorative borders.",
            "Use rich, deep colors typical of illuminated manuscripts.",
        ),
    ),
}


def get_template(template_id: str) -> NoteTemplate:
    """Look up a template, falling back to the default for unknown ids."""
    if not isinstance(template_id, str):
        return TEMPLATES[DEFAULT_TEMPLATE_ID]
    return TEMPLATES.get(template_id.strip().lower(), TEMPLATES[DEFAULT_TEMPLATE_ID])


def resolve_template_id(template_id: str) -> str:
    """Return the id of the template a request will actually use."""
    return get_template(template_id).id
