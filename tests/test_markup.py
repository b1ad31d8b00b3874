import json

from translation_adapter.content_tree import ContentTree
from translation_adapter.markup import (
    element_html,
    fragment_set_attribute,
    insert_html,
    parse_html,
    prepare_for_publish,
    serialize,
    serialize_node,
)

from conftest import find_element, find_text


def test_parse_sections_and_text():
    tree = parse_html('<p id="a">One <b>two</b> three</p>\n<p id="b">Four</p>')

    assert len(tree.roots) == 2
    first = tree.get_element_by_id("a")
    assert tree.text_content(first) == "One two three"
    assert serialize(tree) == '<p id="a">One <b>two</b> three</p>\n<p id="b">Four</p>'


def test_parse_full_document_uses_body():
    tree = parse_html("<html><head><title>x</title></head><body><p>Body</p></body></html>")

    assert len(tree.roots) == 1
    assert tree.node(tree.roots[0]).tag == "p"


def test_parse_empty():
    tree = parse_html("   ")

    assert tree.roots == []
    assert serialize(tree) == ""


def test_insert_html_keeps_top_level_text():
    tree = parse_html('<p id="a">Start end</p>')
    paragraph = tree.get_element_by_id("a")

    inserted = insert_html(tree, 'x <i>y</i> z', paragraph, 1)

    assert [tree.node(i).is_text for i in inserted] == [True, False, True]
    assert serialize_node(tree, paragraph) == '<p id="a">Start endx <i>y</i> z</p>'


def test_unwrap_and_remove():
    tree = parse_html('<p id="a">See <a href="./X" id="l">X page</a> now<span id="s">gone</span></p>')
    paragraph = tree.get_element_by_id("a")

    tree.unwrap(tree.get_element_by_id("l"))
    span = tree.get_element_by_id("s")
    tree.remove(span)

    assert serialize_node(tree, paragraph) == '<p id="a">See X page now</p>'
    assert not tree.node(span).attached
    assert tree.get_element_by_id("s") is None


def test_copy_subtree_between_trees():
    source = parse_html('<ol id="refs"><li>One</li><li>Two</li></ol>')
    target = ContentTree("translation")

    copy_id = target.copy_subtree(source, source.roots[0])

    assert target.roots == [copy_id]
    assert serialize_node(target, copy_id) == '<ol id="refs"><li>One</li><li>Two</li></ol>'
    # The copy is independent of the original
    target.node(copy_id).attrs["id"] = "cxrefs"
    assert source.node(source.roots[0]).get("id") == "refs"


def test_classes_and_tokens():
    tree = parse_html('<a rel="mw:WikiLink mw:Other" class="x">t</a>')
    node = tree.node(tree.roots[0])

    assert node.has_token("rel", "mw:WikiLink")
    assert not node.has_token("rel", "mw:Wiki")
    node.add_class("y", "x")
    assert node.classes == ["x", "y"]
    node.remove_class("x", "y")
    assert "class" not in node.attrs


def test_malformed_data_mw_is_ignored(caplog):
    tree = parse_html("<span data-mw='{broken'>t</span>")

    assert tree.node(tree.roots[0]).data_mw() is None
    assert "malformed data-mw" in caplog.text


def test_element_html_escapes():
    html = element_html("a", {"title": 'A "quoted" <title>', "href": "A"}, "x < y")

    tree = parse_html(html)
    node = tree.node(tree.roots[0])
    assert node.get("title") == 'A "quoted" <title>'
    assert tree.text_content(node.id) == "x < y"


def test_text_is_escaped_on_output():
    tree = parse_html('<p>Fish &amp; chips &lt;b&gt; "quoted"</p>')
    text = tree.node(tree.roots[0]).children[0]

    assert serialize_node(tree, text) == 'Fish &amp; chips &lt;b&gt; "quoted"'
    assert fragment_set_attribute("a &amp; b <i>c</i>", "data-x", "1") == 'a &amp; b <i data-x="1">c</i>'


def test_fragment_set_attribute():
    html = fragment_set_attribute("Text <b>bold</b> and <i>it</i>", "data-mw", json.dumps({"a": 1}))

    tree = parse_html("<div>" + html + "</div>")
    bold = find_element(tree, data_mw='{"a": 1}')
    assert tree.node(bold).tag == "b"
    assert len(tree.find_all(lambda n: n.get("data-mw") is not None)) == 2
    assert find_text(tree, "Text ") is not None


def test_prepare_for_publish():
    tree = parse_html(
        '<p><a class="cx-target-link cx-target-link-unadapted" href="X">lost</a> and '
        '<a class="cx-target-link" href="Y">kept</a></p>'
    )

    assert prepare_for_publish(tree) == 1
    assert serialize(tree) == '<p>lost and <a class="cx-target-link" href="Y">kept</a></p>'
