from datetime import datetime
from pathlib import Path

import pytest

from folio.errors import FrontMatterError
from folio.extractors import (
    CompositeMetadataExtractor,
    DateExtractor,
    DescriptionExtractor,
    FrontMatter,
    TitleExtractor,
    metadata_problems,
    split_front_matter,
)


def test_split_front_matter_returns_header_and_body():
    header = split_front_matter("---\nlayout: post\ntitle: Hi\ntags: [a, b]\n---\nBody\n")
    assert header.data == {"layout": "post", "title": "Hi", "tags": ["a", "b"]}
    assert header.body == "Body\n"
    assert header.body_line == 6


def test_split_front_matter_allows_empty_header_and_bom():
    header = split_front_matter("\ufeff---\n---\n")
    assert header.data == {}
    assert header.body == ""


@pytest.mark.parametrize(
    "text, message",
    [
        ("# No header\n", "Missing metadata header"),
        ("", "Missing metadata header"),
        ("---\nlayout: post\n", "Unterminated metadata header"),
        ("---\n- a\n- b\n---\n", "must be a mapping"),
        ("---\ntitle: [unclosed\n---\n", "Invalid YAML"),
    ],
)
def test_split_front_matter_rejects_malformed_headers(text, message):
    with pytest.raises(FrontMatterError) as excinfo:
        split_front_matter(text, Path("post.md"))
    assert message in excinfo.value.message
    assert excinfo.value.path == Path("post.md")


def test_metadata_problems():
    assert metadata_problems({"layout": "post", "title": "x", "tags": "a b"}) == []
    assert metadata_problems({}) == [
        ("layout-missing", "Metadata header does not declare a layout")
    ]
    assert metadata_problems({"layout": "  "})[0][0] == "layout-missing"
    codes = [code for code, _ in metadata_problems({"layout": 3, "title": 5, "tags": {"a": 1}})]
    assert codes == ["metadata", "metadata", "metadata"]
    assert metadata_problems({"layout": "x", "tags": [["nested"]]})[0][0] == "metadata"


def test_title_fallbacks(tmp_path):
    path = tmp_path / "2024-02-03-some-post.md"
    extractor = TitleExtractor()
    assert extractor.extract(FrontMatter({"title": " Given "}, "", 3), path) == {"title": "Given"}
    assert extractor.extract(FrontMatter({}, "intro\n# Heading\n", 3), path) == {"title": "Heading"}
    assert extractor.extract(FrontMatter({}, "no heading", 3), path) == {"title": "Some Post"}


def test_date_sources(tmp_path):
    dated = tmp_path / "2024-02-03-post.md"
    dated.write_text("x", encoding="utf-8")
    extractor = DateExtractor()
    header = FrontMatter({}, "", 3)
    assert extractor.extract(header, dated)["date"] == datetime(2024, 2, 3)

    from_header = FrontMatter({"date": "2023-05-06 07:08"}, "", 3)
    assert extractor.extract(from_header, dated)["date"] == datetime(2023, 5, 6, 7, 8)

    undated = tmp_path / "post.md"
    undated.write_text("x", encoding="utf-8")
    assert isinstance(extractor.extract(header, undated)["date"], datetime)


def test_description_and_excerpt(tmp_path):
    body = "# Title\n\nFirst <em>paragraph</em>\nwraps here.\n\nSecond."
    result = DescriptionExtractor().extract(FrontMatter({}, body, 3), tmp_path / "a.md")
    assert result == {
        "description": "First paragraph wraps here.",
        "excerpt": "First paragraph wraps here.",
    }
    html = DescriptionExtractor().extract(
        FrontMatter({"description": "Given"}, body, 3), tmp_path / "a.html"
    )
    assert html == {"description": "Given", "excerpt": ""}


def test_composite_merges_in_order(tmp_path):
    path = tmp_path / "2024-01-01-x.md"
    path.write_text("x", encoding="utf-8")

    class Override:
        def extract(self, header, path):
            return {"title": "Overridden"}

    composite = CompositeMetadataExtractor()
    composite.add_extractor(Override())
    result = composite.extract(FrontMatter({"title": "Orig", "tags": "a a b"}, "", 3), path)
    assert result["title"] == "Overridden"
    assert result["tags"] == ["a", "b"]
    assert result["date"] == datetime(2024, 1, 1)
