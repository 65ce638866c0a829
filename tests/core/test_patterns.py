import pytest
from hypothesis import given
from hypothesis import strategies as st

from sitesmith.core.identifier import Identifier
from sitesmith.core.patterns import (
    Glob,
    Union,
    capture,
    from_capture,
    from_glob,
    from_list,
    from_regex,
    matches,
    overlaps,
)

# --- Strategies ---

paths = st.text(alphabet="ab/", min_size=1, max_size=8).filter(lambda p: p.strip("/") != "")
globs = st.text(alphabet="ab/*", min_size=1, max_size=6)


# --- Identifier ---


def test_identifier_normalizes_path():
    assert Identifier("/posts//a.md").path == "posts/a.md"
    assert Identifier("posts/./a.md") == Identifier("posts/a.md")


def test_identifier_rejects_empty_path():
    with pytest.raises(ValueError):
        Identifier(".")


def test_identifier_versions_are_distinct():
    plain = Identifier("posts/a.md")
    raw = plain.with_version("raw")

    assert plain != raw
    assert str(raw) == "posts/a.md#raw"
    assert raw.with_version(None) == plain
    assert raw.stem == "a"
    assert raw.suffix == ".md"


# --- Matching ---


@pytest.mark.parametrize(
    ("pattern", "path", "expected"),
    [
        ("posts/*", "posts/a.md", True),
        ("posts/*", "posts/2020/a.md", False),
        ("posts/**", "posts/2020/a.md", True),
        ("*.css", "css/main.css", False),
        ("css/*.css", "css/main.css", True),
        ("**/*.pyc", "a/b/c.pyc", True),
        ("index.html", "index.html", True),
        ("index.html", "index.htm", False),
    ],
)
def test_glob_matching(pattern, path, expected):
    assert matches(pattern, path) is expected


def test_glob_captures_wildcards_in_order():
    assert capture("posts/*.md", "posts/hello.md") == ["hello"]
    assert capture("js/**", "js/lib/a.js") == ["lib/a.js"]
    assert capture("*/*.md", "posts/hello.md") == ["posts", "hello"]
    assert capture("posts/*.md", "pages/hello.md") is None


def test_from_list_matches_exact_identifiers_only():
    pattern = from_list(["humans.txt", Identifier("robots.txt")])

    assert pattern.matches("humans.txt")
    assert pattern.matches(Identifier("robots.txt", "raw"))
    assert not pattern.matches("humans.txt.bak")
    assert pattern.capture("humans.txt") == []


def test_regex_pattern_uses_full_match():
    pattern = from_regex(r"images/(?!favicon\.ico$).+")

    assert pattern.matches("images/x.png")
    assert not pattern.matches("images/favicon.ico")
    assert not pattern.matches("static/images/x.png")


def test_union_matches_either_side():
    pattern = from_glob("images/*") | "js/**"

    assert isinstance(pattern, Union)
    assert pattern.matches("images/a.png")
    assert pattern.matches("js/vendor/jquery.js")
    assert not pattern.matches("css/a.css")


def test_union_flattens_nested_unions():
    pattern = (from_glob("a/*") | "b/*") | "c/*"
    assert len(pattern.parts) == 3


def test_from_capture_fills_wildcards():
    assert from_capture("tags/*.html", "game-dev") == Identifier("tags/game-dev.html")


def test_fill_requires_enough_captures():
    with pytest.raises(ValueError, match="Not enough captures"):
        Glob("*/*.html").fill(["only-one"])


@given(globs, paths)
def test_matching_is_deterministic(glob, path):
    """The same pattern and identifier always give the same answer."""
    first = matches(glob, path)
    assert all(matches(glob, path) is first for _ in range(3))
    assert Glob(glob).matches(path) is first


# --- Overlap analysis ---


@pytest.mark.parametrize(
    ("left", "right", "expected"),
    [
        ("posts/*", "posts/*.markdown", True),
        ("posts/*", "css/*", False),
        ("**", "anything/at/all", True),
        ("*.css", "css/*", False),
        ("a/**/b", "a/*", False),
        ("*a", "b*", True),
        ("js/**", "js/*.js", True),
        ("tags/*.html", "posts/*", False),
    ],
)
def test_glob_overlaps(left, right, expected):
    assert overlaps(left, right) is expected
    assert overlaps(right, left) is expected


def test_list_overlaps_glob_when_a_member_matches():
    assert overlaps(from_list(["images/favicon.ico"]), "images/*")
    assert not overlaps(from_list(["humans.txt"]), "images/*")


def test_regex_only_overlaps_enumerations_it_matches():
    static = from_regex(r"images/(?!favicon\.ico$).+")

    assert not overlaps(static, from_list(["images/favicon.ico"]))
    assert overlaps(static, from_list(["images/x.png"]))
    # Regexes are opaque to glob overlap analysis.
    assert not overlaps(static, "images/*")


def test_union_overlaps_if_any_part_does():
    assert overlaps(from_glob("css/*") | "js/**", "js/app.js")
    assert not overlaps(from_glob("css/*") | "js/**", "posts/*")


@given(globs, globs, paths)
def test_overlap_has_no_false_negatives(left, right, path):
    """Two globs that both match a path are reported as overlapping."""
    if matches(left, path) and matches(right, path):
        assert overlaps(left, right)
