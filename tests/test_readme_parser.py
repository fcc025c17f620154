"""Test the default README parser on the CommonMark token stream"""

from catalog_builder.application.readme_parser import DEFAULT_CATEGORY, parse_readme

README = """
# Awesome Things ![badge](https://img.shields.io/badge.svg)

- [Loose](https://github.com/o/loose) - Before any section.

## Contents

- [Tools](#tools)

## Tools ##

- [Alpha](https://github.com/o/alpha) - Does **alpha** things with [lib](https://lib.dev).
* **[Beta](https://github.com/o/beta)** — Beta, `fast`.
- [Gamma](<https://github.com/o/gamma> "title") ![stars](https://img.shields.io/stars.svg)
- Plain bullet with no link.

### Command Line

+ [Delta](https://delta.example.com/) - A CLI.

```
- [Fenced](https://github.com/o/fenced) - Not an item.
```

## C#

- [Sharp](https://github.com/o/sharp) - snake_case_name kept.
"""


def by_name():
    return {item.name: item for item in parse_readme(README)}


class TestParseReadme:

    def test_extracts_linked_bullets_in_order(self):
        names = [item.name for item in parse_readme(README)]

        assert names == ["Loose", "Alpha", "Beta", "Gamma", "Delta", "Sharp"]

    def test_categories_and_subcategories(self):
        items = by_name()

        assert items["Loose"].category == DEFAULT_CATEGORY
        assert items["Alpha"].category == "Tools"
        assert items["Alpha"].subcategory is None
        assert (items["Delta"].category, items["Delta"].subcategory) == ("Tools", "Command Line")
        assert items["Sharp"].category == "C#"
        assert items["Sharp"].subcategory is None

    def test_descriptions_are_plain_text(self):
        items = by_name()

        assert items["Alpha"].description == "Does alpha things with lib."
        assert items["Beta"].description == "Beta, fast."
        assert items["Gamma"].description == ""
        assert items["Sharp"].description == "snake_case_name kept."

    def test_urls(self):
        items = by_name()

        assert items["Gamma"].url == "https://github.com/o/gamma"
        assert items["Delta"].url == "https://delta.example.com/"

    def test_anchor_links_and_fenced_blocks_are_skipped(self):
        urls = {item.url for item in parse_readme(README)}

        assert "#tools" not in urls
        assert "https://github.com/o/fenced" not in urls

    def test_empty_document(self):
        assert parse_readme("") == []

    def test_url_with_balanced_parentheses_is_kept_whole(self):
        [item] = parse_readme("- [Foo](https://en.wikipedia.org/wiki/Foo_(bar)) - a thing")

        assert item.url == "https://en.wikipedia.org/wiki/Foo_(bar)"
        assert item.description == "a thing"

    def test_nested_list_items_are_items_of_their_own(self):
        markdown = (
            "## Libraries\n"
            "- [Outer](https://github.com/o/outer) - Parent.\n"
            "  - [Inner](https://github.com/o/inner) - Child.\n"
        )

        items = parse_readme(markdown)

        assert [(i.name, i.description) for i in items] == [("Outer", "Parent."), ("Inner", "Child.")]
        assert {i.category for i in items} == {"Libraries"}

    def test_indented_code_is_not_parsed(self):
        markdown = "## Tools\n\n    - [Code](https://github.com/o/code) - Example.\n"

        assert parse_readme(markdown) == []

    def test_link_later_in_the_bullet_is_used(self):
        [item] = parse_readme("- Read [Guide](https://guide.dev) first")

        assert (item.name, item.url, item.description) == ("Guide", "https://guide.dev", "first")
