from pathlib import Path

import pytest

from folio.checks import ContentChecker, Violation, check_site


def create_site(tmp_path: Path) -> Path:
    site = tmp_path / "site"
    (site / "_layouts").mkdir(parents=True)
    (site / "_includes").mkdir()
    (site / "_layouts" / "default.html").write_text("{{ content }}", encoding="utf-8")
    (site / "_includes" / "two-column.html").write_text("{{ inputs[0] }}", encoding="utf-8")
    (site / "good.md").write_text(
        "---\nlayout: default\ntitle: Good\ntags: [a]\n---\n"
        "{% capture left %}x{% endcapture %}{% capture right %}y{% endcapture %}\n"
        "{% include two-column.html left right %}\n",
        encoding="utf-8",
    )
    return site


def codes(violations):
    return [v.code for v in violations]


def test_clean_site_passes(tmp_path):
    create_site(tmp_path)
    report = check_site(tmp_path)
    assert report.ok
    assert [p.name for p in report.checked] == ["good.md"]


@pytest.mark.parametrize(
    "text, expected, line",
    [
        ("no header\n", ["front-matter"], 1),
        ("---\ntitle: x\n", ["front-matter"], 1),
        ("---\ntitle: x\n---\n", ["layout-missing"], 1),
        ("---\nlayout: nope\n---\n", ["layout-unresolved"], 1),
        ("---\nlayout: default\ntitle: [1]\ntags: 5\n---\n", ["metadata", "metadata"], 1),
        ("---\nlayout: default\n---\n\n{% capture a %}", ["directive"], 5),
        ("---\nlayout: default\n---\n{% include missing.html %}\n", ["include-missing"], 4),
        (
            "---\nlayout: default\n---\n\n\n{% include two-column.html left right %}\n",
            ["capture-undefined", "capture-undefined"],
            6,
        ),
    ],
)
def test_violations(tmp_path, text, expected, line):
    site = create_site(tmp_path)
    path = site / "bad.md"
    path.write_text(text, encoding="utf-8")
    violations = ContentChecker(site).check_file(path)
    assert codes(violations) == expected
    assert all(v.path == path for v in violations)
    assert violations[0].line == line


def test_report_collects_every_file_including_drafts(tmp_path):
    site = create_site(tmp_path)
    (site / "posts").mkdir()
    (site / "posts" / "_draft.md").write_text("---\nlayout: gone\n---\n", encoding="utf-8")
    (site / "posts" / "ok.md").write_text("---\nlayout: default\n---\n", encoding="utf-8")
    (site / "a.md").write_text(
        "---\n---\n{% include nothing.html %}\n", encoding="utf-8"
    )
    report = check_site(tmp_path)
    assert not report.ok
    assert len(report.checked) == 4
    assert [(v.path.name, v.code) for v in report.violations] == [
        ("a.md", "layout-missing"),
        ("a.md", "include-missing"),
        ("_draft.md", "layout-unresolved"),
    ]
    assert codes(report.for_path(site / "a.md")) == ["layout-missing", "include-missing"]


def test_violation_format(tmp_path):
    violation = Violation(tmp_path / "site" / "a.md", 3, "directive", "Unknown tag 'x'")
    assert violation.format(tmp_path) == "site/a.md:3: [directive] Unknown tag 'x'"
    assert Violation(Path("a.md"), None, "front-matter", "bad").format() == (
        "a.md: [front-matter] bad"
    )


def test_missing_site_dir(tmp_path):
    with pytest.raises(FileNotFoundError):
        check_site(tmp_path)


def test_undecodable_file_is_reported(tmp_path):
    site = create_site(tmp_path)
    path = site / "bad.md"
    path.write_bytes(b"---\nlayout: default\n---\n\xff\xfe bad\n")
    violations = ContentChecker(site).check_file(path)
    assert [(v.code, v.line) for v in violations] == [("front-matter", 4)]
    assert "not valid UTF-8" in violations[0].message
