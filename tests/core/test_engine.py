"""Build engine behaviour: validation before writing, ordering and failure isolation."""

import pytest

from sitesmith.core.compilers import compiler, copy_file, resource_body, save_snapshot
from sitesmith.core.context import depends_on
from sitesmith.core.identifier import Identifier
from sitesmith.core.patterns import from_regex
from sitesmith.core.routes import const_route, id_route, set_extension
from sitesmith.exceptions import (
    AmbiguousRuleError,
    CompilerStepError,
    DependencyCycleError,
    RouteCollisionError,
    SiteValidationError,
    SnapshotNotFoundError,
    UndeclaredDependencyError,
)
from sitesmith.rendering.templates import body_field

POSTS = {
    "posts/a.md": "alpha",
    "posts/b.md": "beta",
}


def upper(content, ctx):
    return content.upper()


def explode_on_beta(content, ctx):
    if "beta" in content.lower():
        raise RuntimeError("cannot handle beta")
    return content


def _joined_snapshots(content, ctx):
    return "|".join(str(snapshot) for _, snapshot in ctx.load_all_snapshots("posts/*", "content"))


# --- Registration ---


def test_overlapping_rules_are_rejected_in_strict_mode(engine_factory):
    engine = engine_factory(POSTS)
    engine.match("posts/*", route=id_route, compiler=compiler(resource_body), name="posts")

    with pytest.raises(AmbiguousRuleError) as excinfo:
        engine.match("posts/*.md", route=id_route, compiler=compiler(resource_body), name="markdown")

    assert excinfo.value.first == "posts"
    assert excinfo.value.second == "markdown"


def test_regex_overlap_found_while_assigning_is_rejected_in_strict_mode(engine_factory):
    engine = engine_factory(POSTS)
    engine.match(from_regex(r"posts/.*"), route=id_route, compiler=compiler(upper), name="regex posts")
    engine.match("posts/*", route=id_route, compiler=compiler(resource_body), name="glob posts")

    with pytest.raises(SiteValidationError) as excinfo:
        engine.build()

    [error] = excinfo.value.errors
    assert isinstance(error, AmbiguousRuleError)
    assert (error.first, error.second) == ("regex posts", "glob posts")
    assert not engine.settings.abs_output_dir.exists()


def test_regex_overlap_is_only_logged_when_not_strict(engine_factory, caplog):
    engine = engine_factory(POSTS, strict_patterns=False)
    engine.match(from_regex(r"posts/.*"), route=id_route, compiler=compiler(upper), name="regex posts")
    engine.match("posts/*", route=id_route, compiler=compiler(resource_body), name="glob posts")

    report = engine.build()

    assert report.ok
    assert (engine.settings.abs_output_dir / "posts/a.md").read_text() == "ALPHA"
    assert "already belongs to rule 'regex posts'" in caplog.text


def test_first_registered_rule_wins_when_not_strict(engine_factory, caplog):
    engine = engine_factory({**POSTS, "other.txt": "other"}, strict_patterns=False)
    engine.match("posts/*", route=id_route, compiler=compiler(upper), name="posts")
    engine.match("**", route=id_route, compiler=compiler(resource_body), name="everything")

    report = engine.build()

    out = engine.settings.abs_output_dir
    assert report.ok
    assert (out / "posts/a.md").read_text() == "ALPHA"
    assert (out / "other.txt").read_text() == "other"
    assert "overlaps 'posts'" in caplog.text
    assert len(engine.registry.overlaps) == 1


def test_versions_compile_the_same_source_independently(engine_factory):
    engine = engine_factory(POSTS)
    engine.match("posts/*", route=set_extension("html"), compiler=compiler(upper))
    engine.match(
        "posts/*",
        route=set_extension("txt"),
        compiler=compiler(resource_body),
        version="raw",
    )

    report = engine.build()

    out = engine.settings.abs_output_dir
    assert report.ok
    assert (out / "posts/a.html").read_text() == "ALPHA"
    assert (out / "posts/a.txt").read_text() == "alpha"


# --- Validation ---


def test_route_collision_is_reported_before_anything_is_written(engine_factory):
    engine = engine_factory({"a.md": "md", "a.markdown": "markdown", "b.md": "b"})
    engine.match("*", route=set_extension("html"), compiler=compiler(resource_body))

    with pytest.raises(SiteValidationError) as excinfo:
        engine.build()

    [error] = excinfo.value.errors
    assert isinstance(error, RouteCollisionError)
    assert error.path == "a.html"
    assert not engine.settings.abs_output_dir.exists()


def test_every_structural_error_is_reported_together(engine_factory):
    engine = engine_factory({"a.md": "a", "b.md": "b", "x/c.md": "c", "y/d.md": "d"})
    engine.match("*.md", route=const_route("same.html"), compiler=compiler(resource_body))
    engine.match(
        "x/*", route=id_route, compiler=compiler(resource_body, dependencies=[depends_on("y/*")]), name="x"
    )
    engine.match(
        "y/*", route=id_route, compiler=compiler(resource_body, dependencies=[depends_on("x/*")]), name="y"
    )

    with pytest.raises(SiteValidationError) as excinfo:
        engine.check()

    kinds = {type(error) for error in excinfo.value.errors}
    assert kinds == {RouteCollisionError, DependencyCycleError}
    [cycle] = [error for error in excinfo.value.errors if isinstance(error, DependencyCycleError)]
    assert set(cycle.rules) == {"x", "y"}


def test_rule_depending_on_itself_is_a_cycle(engine_factory):
    engine = engine_factory(POSTS)
    engine.match(
        "posts/*",
        route=id_route,
        compiler=compiler(resource_body, dependencies=[depends_on("posts/*")]),
        name="posts",
    )

    with pytest.raises(SiteValidationError) as excinfo:
        engine.validate()

    assert isinstance(excinfo.value.errors[0], DependencyCycleError)


def test_check_returns_route_table(engine_factory):
    engine = engine_factory({**POSTS, "notes.txt": "n"})
    engine.match("posts/*", route=set_extension("html"), compiler=compiler(resource_body))
    engine.create(["rss.xml"], compiler=compiler(resource_body))

    routes = engine.check()

    assert routes == {
        Identifier("posts/a.md"): "posts/a.html",
        Identifier("posts/b.md"): "posts/b.html",
        Identifier("rss.xml"): "rss.xml",
    }


# --- Ordering ---


def test_producers_run_before_consumers_regardless_of_registration(engine_factory):
    engine = engine_factory(POSTS)
    engine.create(
        ["all.html"],
        compiler=compiler(_joined_snapshots, dependencies=[depends_on("posts/*", "content")]),
        name="all",
    )
    engine.match("posts/*", route=set_extension("html"), compiler=compiler(save_snapshot("content"), upper))

    report = engine.build()

    assert report.ok
    assert [result.rule for result in report.results][-1] == "all"
    assert (engine.settings.abs_output_dir / "all.html").read_text() == "alpha|beta"


def test_snapshot_never_captured_is_an_item_error(engine_factory):
    engine = engine_factory(POSTS)
    engine.create(
        ["all.html"],
        compiler=compiler(_joined_snapshots, dependencies=[depends_on("posts/*", "content")]),
    )
    engine.match("posts/*", route=set_extension("html"), compiler=compiler(upper))

    report = engine.build()

    [error] = report.errors
    assert isinstance(error.cause, SnapshotNotFoundError)
    assert error.cause.producer_failed is False


def test_undeclared_dependency_is_rejected(engine_factory):
    engine = engine_factory(POSTS)
    engine.match("posts/*", route=set_extension("html"), compiler=compiler(save_snapshot("content")))
    engine.create(["all.html"], compiler=compiler(_joined_snapshots))

    report = engine.build()

    [error] = report.errors
    assert error.identifier == Identifier("all.html")
    assert isinstance(error.cause, UndeclaredDependencyError)
    assert not (engine.settings.abs_output_dir / "all.html").exists()


def test_loading_own_snapshot_needs_no_declaration(engine_factory):
    def reread(content, ctx):
        return ctx.load_snapshot(ctx.identifier, "raw") + "!"

    engine = engine_factory(POSTS)
    engine.match("posts/*", route=id_route, compiler=compiler(save_snapshot("raw"), upper, reread))

    report = engine.build()

    assert report.ok
    assert (engine.settings.abs_output_dir / "posts/a.md").read_text() == "alpha!"


# --- Failure isolation ---


def test_failed_item_does_not_stop_the_build(engine_factory):
    engine = engine_factory({**POSTS, "style.css": "a {}"})
    engine.match("posts/*", route=set_extension("html"), compiler=compiler(upper, explode_on_beta), name="posts")
    engine.match("*.css", route=id_route, compiler=compiler(copy_file))

    report = engine.build()

    out = engine.settings.abs_output_dir
    assert report.exit_code == 1
    [error] = report.errors
    assert isinstance(error, CompilerStepError)
    assert error.identifier == Identifier("posts/b.md")
    assert error.rule == "posts"
    assert error.step_index == 2
    assert isinstance(error.cause, RuntimeError)
    assert (out / "posts/a.html").read_text() == "ALPHA"
    assert not (out / "posts/b.html").exists()
    assert (out / "style.css").read_text() == "a {}"


def test_consumers_skip_failed_producers(engine_factory, caplog):
    engine = engine_factory(POSTS)
    engine.match(
        "posts/*",
        route=set_extension("html"),
        compiler=compiler(explode_on_beta, save_snapshot("content")),
    )
    engine.create(
        ["all.html"],
        compiler=compiler(_joined_snapshots, dependencies=[depends_on("posts/*", "content")]),
    )

    report = engine.build()

    assert len(report.errors) == 1
    assert (engine.settings.abs_output_dir / "all.html").read_text() == "alpha"
    assert "its compilation failed" in caplog.text


def test_item_listings_skip_failed_producers_and_show_compiled_bodies(engine_factory, caplog):
    def list_bodies(content, ctx):
        bodies = [body_field().resolve(item, ctx)["body"] for item in ctx.load_all("posts/*")]
        return "|".join([*bodies, body_field().resolve(ctx.item, ctx)["body"] or "<own>"])

    engine = engine_factory(POSTS)
    engine.match("posts/*", route=set_extension("html"), compiler=compiler(upper, explode_on_beta))
    engine.create(["all.html"], compiler=compiler(list_bodies, dependencies=[depends_on("posts/*")]))

    report = engine.build()

    assert [str(error.identifier) for error in report.errors] == ["posts/b.md"]
    assert (engine.settings.abs_output_dir / "all.html").read_text() == "ALPHA|<own>"
    assert "Skipping posts/b.md for all.html" in caplog.text


def test_direct_load_of_failed_producer_says_so(engine_factory):
    def load_beta(content, ctx):
        return ctx.load_snapshot(Identifier("posts/b.md"), "content")

    engine = engine_factory(POSTS)
    engine.match("posts/*", route=set_extension("html"), compiler=compiler(explode_on_beta, save_snapshot("content")))
    engine.create(
        ["beta.html"],
        compiler=compiler(load_beta, dependencies=[depends_on("posts/*", "content")]),
    )

    report = engine.build()

    failing = {str(error.identifier): error for error in report.errors}
    assert set(failing) == {"posts/b.md", "beta.html"}
    assert failing["beta.html"].cause.producer_failed is True
