"""Markdown rendering for question text shown to students.

Question and option text is authored as markdown. Raw HTML in the source is
not passed through, so instructor text cannot inject markup into the student
page.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt

from quizroom.core.models import Question


@dataclass(slots=True)
class MarkdownRenderer:
    """Converts markdown into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        sanitized = markdown_text.strip()
        if not sanitized:
            return "<p><em>No content provided.</em></p>"
        return self._markdown.render(sanitized)

    def render_inline(self, markdown_text: str) -> str:
        return self._markdown.renderInline(markdown_text.strip())

    def render_question(self, question: Question) -> dict[str, object]:
        """Student-facing view of a question, without the correct answer."""
        return {
            "id": question.id,
            "type": question.type.value,
            "points": question.points,
            "text": question.text,
            "options": list(question.options),
            "question_html": self.render_fragment(question.text),
            "options_html": [self.render_inline(option) for option in question.options],
        }


renderer = MarkdownRenderer()
