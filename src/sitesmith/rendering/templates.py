"""Jinja2 templates and the contexts that feed them.

Templates live in the site's content directory and are addressed by their
path there (``templates/post.html``). A :class:`TemplateContext` turns an item
into template variables; contexts combine with ``+`` and the left-hand side
wins when both define a field.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from html import escape
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, Template, TemplateError

from sitesmith.core.snapshots import FINAL_SNAPSHOT
from sitesmith.exceptions import MissingFieldError, TemplateRenderError

if TYPE_CHECKING:
    from sitesmith.core.context import CompilationContext
    from sitesmith.core.item import Item
    from sitesmith.core.tags import TagIndex

logger = logging.getLogger(__name__)

FieldProvider = Callable[["Item", "CompilationContext"], Mapping[str, Any]]


def format_date(value: datetime, fmt: str = "%B %e, %Y") -> str:
    """strftime with a portable ``%e`` (day of month without padding)."""
    if not isinstance(value, datetime):
        return str(value)
    return value.strftime(fmt.replace("%e", str(value.day)))


class TemplateEngine:
    """Loads and renders Jinja2 templates from the content directory."""

    def __init__(self, template_dir: Path) -> None:
        self.template_dir = template_dir
        self.env = Environment(
            loader=FileSystemLoader(self.template_dir),
            autoescape=False,  # bodies are already HTML
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self.env.filters["format_date"] = format_date

    def load_template(self, template_id: str) -> Template:
        try:
            return self.env.get_template(template_id)
        except TemplateError as exc:
            raise TemplateRenderError(template_id, str(exc)) from exc

    def apply_template(self, template_id: str, context: Mapping[str, Any], content: str) -> str:
        """Render ``template_id`` with ``context``; ``content`` is exposed as ``body``."""
        template = self.load_template(template_id)
        try:
            return template.render({**context, "body": content})
        except TemplateError as exc:
            raise TemplateRenderError(template_id, str(exc)) from exc

    def apply_as_template(self, source: str, context: Mapping[str, Any], *, name: str = "<item>") -> str:
        """Render a string (usually an item's own body) as a template."""
        try:
            return self.env.from_string(source).render(context)
        except TemplateError as exc:
            raise TemplateRenderError(name, str(exc)) from exc


class TemplateContext:
    """Ordered collection of field providers."""

    def __init__(self, *providers: FieldProvider) -> None:
        self.providers: tuple[FieldProvider, ...] = providers

    def __add__(self, other: TemplateContext) -> TemplateContext:
        return TemplateContext(*self.providers, *other.providers)

    def resolve(self, item: Item, ctx: CompilationContext) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for provider in reversed(self.providers):
            values.update(provider(item, ctx))
        return values


def const_field(name: str, value: Any) -> TemplateContext:
    return TemplateContext(lambda item, ctx: {name: value})


def metadata_fields() -> TemplateContext:
    return TemplateContext(lambda item, ctx: dict(item.metadata))


def body_field(name: str = "body", snapshot: str | None = None) -> TemplateContext:
    """The item's compiled content: ``snapshot`` if given, else its final output.

    The item being compiled has no final output yet and gets its source body.
    Any other item must already have the snapshot; a missing one raises
    :class:`~sitesmith.exceptions.SnapshotNotFoundError`.
    """

    def provider(item: Item, ctx: CompilationContext) -> dict[str, Any]:
        store = ctx.build.snapshots
        if snapshot is not None:
            return {name: store.load(item.identifier, snapshot)}
        if item.identifier == ctx.identifier:
            return {name: item.body}
        return {name: store.load(item.identifier, FINAL_SNAPSHOT)}

    return TemplateContext(provider)


def url_field(name: str = "url") -> TemplateContext:
    def provider(item: Item, ctx: CompilationContext) -> dict[str, Any]:
        url = ctx.build.url_for(item.identifier)
        return {name: url} if url is not None else {}

    return TemplateContext(provider)


def path_field(name: str = "path") -> TemplateContext:
    return TemplateContext(lambda item, ctx: {name: item.identifier.path})


def title_field(name: str = "title") -> TemplateContext:
    """Falls back to the file name when the item has no title metadata."""
    return TemplateContext(lambda item, ctx: {name: item.metadata.get(name, item.identifier.stem)})


def date_field(name: str = "date", fmt: str = "%B %e, %Y") -> TemplateContext:
    def provider(item: Item, ctx: CompilationContext) -> dict[str, Any]:
        try:
            return {name: format_date(item.date, fmt)}
        except MissingFieldError:
            return {}

    return TemplateContext(provider)


def tags_field(name: str, tags: TagIndex) -> TemplateContext:
    """Comma-separated links to the listing page of each of the item's tags."""

    def provider(item: Item, ctx: CompilationContext) -> dict[str, Any]:
        source = item.identifier.with_version(None)
        links = [
            f'<a href="{escape(tags.url_for(tag))}">{escape(tag)}</a>' for tag in tags.tags_of(source)
        ]
        return {name: ", ".join(links)}

    return TemplateContext(provider)


def meta_keywords_field(name: str = "metaKeywords", source: str = "tags") -> TemplateContext:
    """A ``<meta name="keywords">`` tag built from the item's tags, or an empty string."""

    def provider(item: Item, ctx: CompilationContext) -> dict[str, Any]:
        keywords = item.metadata.get(source)
        if not keywords:
            return {name: ""}
        return {name: f'<meta name="keywords" content="{escape(keywords)}">\n'}

    return TemplateContext(provider)


def list_field(
    name: str,
    context: TemplateContext,
    loader: Callable[[CompilationContext], list[Item]],
) -> TemplateContext:
    """A list of items, each rendered through ``context``."""

    def provider(item: Item, ctx: CompilationContext) -> dict[str, Any]:
        return {name: [context.resolve(member, ctx) for member in loader(ctx)]}

    return TemplateContext(provider)


def default_context() -> TemplateContext:
    return body_field() + metadata_fields() + url_field() + path_field() + title_field()
