"""HTML document for a single question, ready for image rendering."""

import html
from string import Template
from typing import List

from gmat_bot.domain.models import ContentItem

ACCENT_COLOR = "#0068ff"
ANSWER_LABELS = ("A", "B", "C", "D", "E")

_PAGE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>GMAT Question $item_id</title>
    <script>
        window.MathJax = {
            tex: {
                inlineMath: [['\\\\(', '\\\\)'], ['$$', '$$']],
                displayMath: [['\\\\[', '\\\\]'], ['$$$$', '$$$$']]
            },
            options: {
                processHtmlClass: 'tex2jax_process',
                processEscapes: true
            }
        };
    </script>
    <script id="MathJax-script" async src="https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js"></script>
    <style>
        body {
            font-family: Georgia, 'Times New Roman', Times, serif;
            max-width: 1000px;
            margin: 0 auto;
            padding: 30px;
            line-height: 1.6;
            background-color: #ffffff;
            color: #333;
        }
        .question-header {
            background: $accent;
            color: white;
            padding: 25px;
            border-radius: 8px;
            margin-bottom: 30px;
        }
        .question-id { font-size: 1.1em; font-weight: 600; opacity: 0.9; margin-bottom: 5px; }
        .question-type { font-size: 1.8em; font-weight: 700; margin: 0; }
        .question-content { background: white; padding: 30px; margin-bottom: 25px; }
        .question-text { font-size: 1.2em; line-height: 1.7; margin-bottom: 25px; color: #2c3e50; }
        .answers-section, .explanation, .source-link { background: #f9f9f9; }
        .answers-section { padding: 25px; margin-bottom: 25px; }
        .answers-section h3, .explanations-section h3 {
            color: $accent;
            margin-top: 0;
            margin-bottom: 20px;
            font-size: 1.3em;
        }
        .answer-option { padding: 12px 15px; margin: 8px 0; background: white; font-size: 1.1em; }
        .explanations-section { background: white; padding: 25px; }
        .explanation { margin-bottom: 25px; padding: 20px; }
        .explanation h4 { color: $accent; margin-top: 0; margin-bottom: 15px; }
        .source-link { margin-top: 30px; padding: 15px; font-size: 0.9em; }
        .source-link a { color: $accent; text-decoration: none; }
        .MathJax { font-size: 1.1em !important; }
        table { border-collapse: collapse; width: 100%; margin: 15px 0; }
        th, td { padding: 12px; text-align: left; border-bottom: 1px solid #eee; }
        th { background-color: #f9f9f9; font-weight: bold; }
        ul, ol { padding-left: 25px; }
        li { margin: 8px 0; }
        code { background-color: #f9f9f9; padding: 2px 6px; font-family: 'Courier New', monospace; }
        strong { color: #2c3e50; }
        em { color: #7f8c8d; }
    </style>
</head>
<body>
    <div class="question-header">
        <div class="question-id">Question ID: $item_id</div>
        <h1 class="question-type">$category</h1>
    </div>
    <div class="question-content">
        <div class="question-text tex2jax_process">
            $question
        </div>
        $answers
        $explanations
    </div>
    <div class="source-link">
        <strong>Source:</strong> <a href="$source" target="_blank">$source</a>
    </div>
</body>
</html>
""")


def answer_label(index: int) -> str:
    """A-E for the usual five choices, 1-based numbers past that."""
    if index < len(ANSWER_LABELS):
        return ANSWER_LABELS[index]
    return str(index + 1)


def _answers_section(answers: List[str]) -> str:
    if not answers:
        return ""
    options = "\n".join(
        f'<div class="answer-option"><strong>{answer_label(i)})</strong> {answer}</div>'
        for i, answer in enumerate(answers)
    )
    return (
        '<div class="answers-section tex2jax_process">\n'
        "<h3>Answer Choices:</h3>\n"
        f"{options}\n"
        "</div>"
    )


def _explanations_section(explanations: List[str]) -> str:
    if not explanations:
        return ""
    blocks = "\n".join(
        f'<div class="explanation"><h4>Explanation {i + 1}:</h4>{text}</div>'
        for i, text in enumerate(explanations)
    )
    return (
        '<div class="explanations-section tex2jax_process">\n'
        "<h3>Explanations:</h3>\n"
        f"{blocks}\n"
        "</div>"
    )


def build_question_html(item: ContentItem) -> str:
    """Render a ContentItem into a standalone HTML page.

    Question, answer and explanation bodies are corpus HTML and are
    inserted as-is; identifiers and the source URL are escaped.
    """
    return _PAGE.substitute(
        item_id=html.escape(item.id),
        accent=ACCENT_COLOR,
        category=html.escape(item.category.display_name),
        question=item.question,
        answers=_answers_section(item.answers),
        explanations=_explanations_section(item.explanations),
        source=html.escape(item.source, quote=True),
    )
