"""Tests for markdown rendering of question and option text."""

from __future__ import annotations

from assessment_app.core.models import OptionLetter
from assessment_app.core.text_renderer import QuestionTextRenderer


def test_question_paragraphs_render_as_blocks():
    html = QuestionTextRenderer().render_question("Read the passage.\n\nWhich is **true**?")

    assert html == "<p>Read the passage.</p>\n<p>Which is <strong>true</strong>?</p>\n"


def test_blank_question_gets_placeholder():
    assert QuestionTextRenderer().render_question("   ") == "<p><em>No question text.</em></p>"


def test_options_render_inline_and_escape_html():
    rendered = QuestionTextRenderer().render_options(
        {OptionLetter.A: "*Mitochondrion*", OptionLetter.B: "<script>x</script>"}
    )

    assert rendered[OptionLetter.A] == "<em>Mitochondrion</em>"
    assert "<script>" not in rendered[OptionLetter.B]
    assert list(rendered) == [OptionLetter.A, OptionLetter.B]
