"""Rules of the blog: posts, pages, tag listings, the home page and the RSS feed."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sitesmith.core.compilers import (
    apply_as_template,
    apply_template,
    compiler,
    compress_css,
    copy_file,
    externalize,
    feed_compiler,
    internalize,
    make_empty,
    markdown,
    relativize,
    save_snapshot,
)
from sitesmith.core.context import depends_on
from sitesmith.core.item import recent_first
from sitesmith.core.patterns import from_glob, from_list, from_regex
from sitesmith.core.routes import const_route, id_route, set_extension
from sitesmith.rendering.templates import (
    TemplateContext,
    const_field,
    date_field,
    default_context,
    list_field,
    meta_keywords_field,
    tags_field,
)

if TYPE_CHECKING:
    from sitesmith.core.compilers import Compiler
    from sitesmith.core.engine import Engine
    from sitesmith.core.patterns import Pattern
    from sitesmith.core.routes import Route
    from sitesmith.core.tags import TagIndex

logger = logging.getLogger(__name__)

POSTS = "posts/*"
CONTENT_SNAPSHOT = "content"
POST_DATE_FORMAT = '<span class="post-date">%B %e, %Y</span>'


def post_context() -> TemplateContext:
    return date_field("date", POST_DATE_FORMAT) + default_context() + meta_keywords_field()


def post_context_with_tags(tags: TagIndex) -> TemplateContext:
    return tags_field("tags", tags) + post_context()


def _tag_page(tag: str, pattern: Pattern) -> tuple[Route, Compiler]:
    posts = list_field("posts", post_context(), lambda ctx: recent_first(ctx.load_all(pattern)))
    ctx = const_field("title", f'Posts tagged "{tag}"') + posts + default_context()
    return id_route, compiler(
        make_empty,
        apply_template("templates/tag.html", ctx),
        apply_template("templates/default.html", ctx),
        relativize,
    )


def configure_blog(engine: Engine) -> TagIndex:
    """Register every rule of the blog on ``engine`` and return its tag index."""
    settings = engine.settings
    tags = engine.build_tags(POSTS, "tags/*.html")
    engine.tags_rules(tags, _tag_page)

    engine.match(
        from_list(["images/favicon.ico"]),
        route=const_route("favicon.ico"),
        compiler=compiler(copy_file),
        name="favicon",
    )
    engine.match(from_list(["humans.txt", "robots.txt"]), route=id_route, compiler=compiler(copy_file))
    engine.match(
        from_regex(r"images/(?!favicon\.ico$).+") | from_glob("js/**"),
        route=id_route,
        compiler=compiler(copy_file),
        name="static assets",
    )
    engine.match("css/*.css", route=id_route, compiler=compiler(compress_css))

    with_tags = post_context_with_tags(tags)
    if settings.pages:
        engine.match(
            from_list(settings.pages),
            route=set_extension("html"),
            compiler=compiler(
                markdown,
                apply_template("templates/default.html", with_tags),
                externalize(),
                save_snapshot(CONTENT_SNAPSHOT),
                internalize(),
                relativize,
            ),
            name="pages",
        )

    engine.match(
        POSTS,
        route=set_extension("html"),
        compiler=compiler(
            markdown,
            apply_template("templates/post.html", with_tags),
            externalize(),
            save_snapshot(CONTENT_SNAPSHOT),
            internalize(),
            apply_template("templates/default.html", with_tags),
            relativize,
        ),
        name="posts",
    )

    index_ctx = (
        list_field("posts", post_context(), lambda ctx: recent_first(ctx.load_all(POSTS)))
        + const_field("title", "Home")
        + default_context()
    )
    engine.match(
        from_list(["index.html"]),
        route=id_route,
        compiler=compiler(
            apply_as_template(index_ctx),
            apply_template("templates/default.html", index_ctx),
            relativize,
            dependencies=[depends_on(POSTS)],
        ),
        name="index",
    )

    engine.create(["rss.xml"], route=id_route, compiler=feed_compiler(POSTS, CONTENT_SNAPSHOT), name="rss")

    logger.debug("Configured %d rules", len(engine.registry))
    return tags
