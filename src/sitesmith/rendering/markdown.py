"""Markdown to HTML rendering."""

from markdown_it import MarkdownIt

_md = MarkdownIt("commonmark", {"html": True}).enable("table").enable("strikethrough")


def render_markdown(content: str) -> str:
    """Render a markdown document to an HTML fragment."""
    return _md.render(content)
