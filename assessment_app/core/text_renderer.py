"""Markdown rendering for question and option text delivered to students."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from markdown_it import MarkdownIt

from assessment_app.core.models import OptionLetter


@dataclass(slots=True)
class QuestionTextRenderer:
    """Renders teacher-written markdown for the student's view of a question.

    Question text becomes block HTML (paragraphs, lists, tables). Option text
    is rendered inline so it can sit inside a radio-button label. Raw HTML in
    teacher input is escaped unless ``enable_html`` is set.
    """

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = MarkdownIt("commonmark", {"html": self.enable_html, "breaks": True}).enable(
            ["table", "strikethrough"]
        )

    def render_question(self, question_text: str) -> str:
        text = question_text.strip()
        if not text:
            return "<p><em>No question text.</em></p>"
        return self._markdown.render(text)

    def render_options(self, options: Mapping[OptionLetter, str]) -> dict[OptionLetter, str]:
        return {letter: self._markdown.renderInline(text.strip()) for letter, text in options.items()}


# MarkdownIt is safe to share for read-only renders.
renderer = QuestionTextRenderer()
