from datetime import date, datetime
from types import SimpleNamespace

from folio.utils import (
    absolutize_html_urls,
    build_tags_index,
    coerce_datetime,
    ensure_clean_dir,
    extract_date_from_name,
    extract_number_from_name,
    first_paragraph,
    join_root_url,
    line_of,
    normalize_tags,
    slugify,
    titleize,
)


def test_slugify_and_titleize():
    assert slugify("2024-01-15-Hello World!") == "hello-world"
    assert slugify("___") == "index"
    assert titleize("2024-01-15-hello-world.md") == "Hello World"
    assert titleize("getting_started.md") == "Getting Started"
    assert titleize("---.md") == "Untitled"


def test_dates():
    assert extract_date_from_name("2024-01-15-post") == datetime(2024, 1, 15)
    assert extract_date_from_name("2024-13-45-post") is None
    assert extract_date_from_name("post") is None
    assert coerce_datetime(date(2024, 3, 4)) == datetime(2024, 3, 4)
    assert coerce_datetime(datetime(2024, 3, 4, 5, 6)) == datetime(2024, 3, 4, 5, 6)
    assert coerce_datetime("2024-03-04") == datetime(2024, 3, 4)
    assert coerce_datetime("yesterday") is None
    assert coerce_datetime(None) is None


def test_normalize_tags():
    assert normalize_tags(None) == []
    assert normalize_tags("a b  a") == ["a", "b"]
    assert normalize_tags(["x", 2, "x", " "]) == ["x", "2"]


def test_first_paragraph_skips_directives_and_headings():
    text = "# Title\n\n{% capture a %}\nhidden\n{% endcapture %}\n\nReal <b>text</b> {{ a }} here.\n"
    assert first_paragraph(text) == "Real text here."
    assert first_paragraph("") == ""
    assert first_paragraph("word " * 100, limit=10) == "word word "


def test_urls():
    assert join_root_url("https://example.com/", "about") == "https://example.com/about"
    assert join_root_url("", "/about") == "/about"
    html = '<a href="/about/">a</a><img src="//cdn/x.png"><a href="https://o.com">o</a><a href="#top">t</a>'
    assert absolutize_html_urls(html, "https://example.com") == (
        '<a href="https://example.com/about/">a</a><img src="//cdn/x.png">'
        '<a href="https://o.com">o</a><a href="#top">t</a>'
    )
    assert absolutize_html_urls(html, "") == html


def test_ensure_clean_dir(tmp_path):
    target = tmp_path / "out"
    (target / "nested").mkdir(parents=True)
    (target / "nested" / "file.txt").write_text("x", encoding="utf-8")
    ensure_clean_dir(target)
    assert target.is_dir()
    assert list(target.iterdir()) == []


def test_misc_helpers():
    assert line_of("a\nb\nc", 4) == 3
    assert extract_number_from_name("01-intro") == 1
    assert extract_number_from_name("2024-01-01-02-part") == 2
    assert extract_number_from_name("2024-01-01-part") is None
    assert extract_number_from_name("intro") is None

    a = SimpleNamespace(tags=["web", "python"])
    b = SimpleNamespace(tags=["python"])
    index = build_tags_index([a, b])
    assert list(index) == ["python", "web"]
    assert index["python"] == [a, b]
