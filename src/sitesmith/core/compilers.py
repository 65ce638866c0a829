"""Compiler chains and the standard steps they are built from.

A step is a callable ``(content, ctx) -> content``. A :class:`Compiler` runs
its steps in order, starting from the item's body. Steps that read other
items must be paired with a declared :class:`~sitesmith.core.context.Dependency`.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from sitesmith.core import urls
from sitesmith.core.context import depends_on
from sitesmith.core.feed import assemble_feed, render_rss
from sitesmith.rendering.markdown import render_markdown

if TYPE_CHECKING:
    from sitesmith.core.context import CompilationContext, Dependency
    from sitesmith.core.item import Content
    from sitesmith.core.patterns import Pattern
    from sitesmith.rendering.templates import TemplateContext

Step = Callable[["Content", "CompilationContext"], "Content"]


@dataclass(frozen=True)
class Compiler:
    steps: tuple[Step, ...]
    dependencies: tuple[Dependency, ...] = ()

    def then(self, *steps: Step) -> Compiler:
        return Compiler(self.steps + steps, self.dependencies)

    def requiring(self, *dependencies: Dependency) -> Compiler:
        return Compiler(self.steps, self.dependencies + dependencies)

    def __len__(self) -> int:
        return len(self.steps)


def compiler(*steps: Step, dependencies: Iterable[Dependency] = ()) -> Compiler:
    return Compiler(tuple(steps), tuple(dependencies))


def _text(content: Content) -> str:
    if isinstance(content, bytes):
        msg = "step expects text content, got bytes"
        raise TypeError(msg)
    return content


# --- Source steps ---


def resource_body(content: Content, ctx: CompilationContext) -> Content:
    """The item's body without front matter."""
    return ctx.item.body


def copy_file(content: Content, ctx: CompilationContext) -> bytes:
    """The item's source bytes, unchanged."""
    return ctx.item.read_bytes()


def make_empty(content: Content, ctx: CompilationContext) -> str:
    return ""


# --- Transform steps ---


def markdown(content: Content, ctx: CompilationContext) -> str:
    return render_markdown(_text(content))


_CSS_COMMENT: Final = re.compile(r"/\*.*?\*/", re.DOTALL)
_CSS_WHITESPACE: Final = re.compile(r"\s+")
_CSS_SEPARATOR: Final = re.compile(r"\s*([{};:,>])\s*")


def compress_css_text(css: str) -> str:
    """Strip comments and redundant whitespace from a stylesheet."""
    css = _CSS_COMMENT.sub("", css)
    css = _CSS_WHITESPACE.sub(" ", css)
    css = _CSS_SEPARATOR.sub(r"\1", css)
    return css.replace(";}", "}").strip()


def compress_css(content: Content, ctx: CompilationContext) -> str:
    return compress_css_text(_text(content))


def save_snapshot(name: str) -> Step:
    """Capture the content under ``name`` and pass it on unchanged."""

    def step(content: Content, ctx: CompilationContext) -> Content:
        ctx.save_snapshot(name, content)
        return content

    step.__name__ = f"save_snapshot({name})"
    return step


def apply_template(template_id: str, context: TemplateContext) -> Step:
    def step(content: Content, ctx: CompilationContext) -> str:
        values = context.resolve(ctx.item, ctx)
        return ctx.templates.apply_template(template_id, values, _text(content))

    step.__name__ = f"apply_template({template_id})"
    return step


def apply_as_template(context: TemplateContext) -> Step:
    """Render the content itself as a template (``index.html`` listing posts)."""

    def step(content: Content, ctx: CompilationContext) -> str:
        values = context.resolve(ctx.item, ctx)
        return ctx.templates.apply_as_template(_text(content), values, name=str(ctx.identifier))

    return step


def externalize(root: str | None = None) -> Step:
    """Prefix root-relative URLs with the site root (defaults to the feed root)."""

    def step(content: Content, ctx: CompilationContext) -> str:
        return urls.externalize_urls(_text(content), root or ctx.build.site_root)

    return step


def internalize(root: str | None = None) -> Step:
    """Undo :func:`externalize`: strip the site root back off in-site URLs."""

    def step(content: Content, ctx: CompilationContext) -> str:
        return urls.internalize_urls(_text(content), root or ctx.build.site_root)

    return step


def relativize(content: Content, ctx: CompilationContext) -> Content:
    route = ctx.route
    if route is None:
        return content
    return urls.relativize_urls(_text(content), route)


def clean_index(content: Content, ctx: CompilationContext) -> str:
    return urls.clean_index_urls(_text(content))


def feed_compiler(pattern: Pattern | str, snapshot: str = "content") -> Compiler:
    """RSS feed over the ``snapshot`` of every item matching ``pattern``, newest first."""

    def step(content: Content, ctx: CompilationContext) -> str:
        items = [item for item, _ in ctx.load_all_snapshots(pattern, snapshot)]
        entries = assemble_feed(
            items,
            snapshot,
            loader=ctx.load_snapshot,
            url_for=ctx.build.url_for,
            limit=ctx.settings.feed.limit,
        )
        return render_rss(ctx.settings.feed, entries, feed_url=ctx.url or "/rss.xml")

    return compiler(step, dependencies=[depends_on(pattern, snapshot)])
