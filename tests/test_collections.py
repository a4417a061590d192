from datetime import datetime
from pathlib import Path

from folio.collections import ItemCollection, TagCollection
from folio.content import ContentItem


def make_item(name: str, date: datetime, group: str = "posts", tags=None, draft=False, layout="post"):
    return ContentItem(
        layout=layout,
        tags=tags or [],
        title=name,
        body="",
        content="",
        description="",
        excerpt="",
        url=f"/{group}/{name}/",
        slug=name,
        date=date,
        draft=draft,
        group=group,
        path=Path(f"/site/{group}/{name}.md"),
        folder=group,
        filename=f"{name}.md",
        source_type="markdown",
        layout_template=f"{layout}.html",
    )


def test_filters():
    a = make_item("a", datetime(2024, 1, 1), tags=["python"])
    b = make_item("b", datetime(2024, 1, 2), group="notes", draft=True, layout="note")
    c = make_item("c", datetime(2024, 1, 3), tags=["python", "web"])
    items = ItemCollection([a, b, c])

    assert list(items.group("posts")) == [a, c]
    assert list(items.with_tag("python")) == [a, c]
    assert list(items.with_layout("note")) == [b]
    assert list(items.drafts()) == [b]
    assert list(items.published()) == [a, c]
    assert len(items) == 3
    assert items[0] is a


def test_sorted_and_latest():
    old = make_item("old", datetime(2023, 1, 1))
    new = make_item("new", datetime(2024, 1, 1))
    part_one = make_item("01-part", datetime(2024, 6, 1))
    part_two = make_item("02-part", datetime(2024, 6, 1))
    items = ItemCollection([old, part_one, new, part_two])

    assert [i.slug for i in items.sorted()] == ["02-part", "01-part", "new", "old"]
    assert [i.slug for i in items.sorted(reverse=False)] == ["old", "new", "01-part", "02-part"]
    assert [i.slug for i in items.latest(2)] == ["02-part", "01-part"]


def test_tag_collection():
    a = make_item("a", datetime(2024, 1, 1))
    b = make_item("b", datetime(2024, 1, 2))
    tags = TagCollection({"web": [b], "python": [a, b]})
    assert list(tags) == ["python", "web"]
    assert isinstance(tags["python"], ItemCollection)
    assert tags.get("missing") is None
    assert tags.counts() == {"python": 2, "web": 1}
    assert "web" in tags


def test_partitions_by_layout_and_tags():
    a = make_item("a", datetime(2024, 1, 1), tags=["web", "python"])
    b = make_item("b", datetime(2024, 1, 2), layout="note", tags=["python"])
    c = make_item("c", datetime(2024, 1, 3))
    items = ItemCollection([a, b, c])

    partitions = items.by_layout()
    assert list(partitions) == ["note", "post"]
    assert list(partitions["post"]) == [a, c]
    assert items.tag_names() == ["python", "web"]
    assert ItemCollection([]).tag_names() == []


def test_same_date_items_order_by_url():
    first = make_item("alpha", datetime(2024, 1, 1))
    second = make_item("beta", datetime(2024, 1, 1), group="notes")
    items = ItemCollection([second, first])
    assert [i.url for i in items.sorted(reverse=False)] == ["/notes/beta/", "/posts/alpha/"]
