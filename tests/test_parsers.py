import re

import pytest

from web_harvester.core.errors import ExprTypeError, NotMatchError
from web_harvester.core.rules import Rules
from web_harvester.fetch.response import Response, declared_charset
from web_harvester.parsers import (
    HTMLNode,
    JSONNode,
    ParserRegistry,
    TextNode,
    ValueNode,
    XMLNode,
    parse_html,
    parse_json,
    parse_text,
    parse_xml,
)

HTML_DOC = """<html><head><title>Hello</title></head>
<body>
  <ul id="list">
    <li class="item"><span>One</span> <b>1</b></li>
    <li class="item"><span>Two</span> <b>2</b></li>
  </ul>
  <a href="/a">A</a><a href="b">B</a>
</body></html>"""

XML_DOC = """<?xml version="1.0" encoding="UTF-8"?>
<rss><channel>
  <item><title>First</title><link>http://example.com/1</link></item>
  <item><title>Second</title><link>http://example.com/2</link></item>
</channel></rss>"""

JSON_DOC = """{
  "store": {
    "book": [
      {"title": "A", "price": 8.95},
      {"title": "B", "price": 12}
    ],
    "open": true,
    "owner": null,
    "my key": "spaced"
  }
}"""


def _response(body, content_type):
    return Response(url="http://example.com/", status_code=200,
                    headers={"Content-Type": content_type},
                    body=body.encode('utf-8'), encoding='utf-8')


@pytest.fixture
def html_root():
    return parse_html(_response(HTML_DOC, "text/html; charset=utf-8"))


@pytest.fixture
def json_root():
    return parse_json(_response(JSON_DOC, "application/json"))


class TestHTML:

    def test_xpath_is_the_default(self, html_root):
        title = html_root.find("//title")
        assert isinstance(title, HTMLNode)
        assert title.value() == "Hello"
        assert type(title.value()) is str

    def test_find_all(self, html_root):
        spans = html_root.find_all("//li/span")
        assert [span.value() for span in spans] == ["One", "Two"]

    def test_css(self, html_root):
        items = html_root.find_all("li.item", "css")
        assert len(items) == 2
        assert items[0].find("b", "CSS").value() == "1"

    def test_relative_xpath_from_child(self, html_root):
        second = html_root.find_all("//li")[1]
        assert second.find("./span").value() == "Two"

    def test_attribute_results_are_value_nodes(self, html_root):
        hrefs = html_root.find_all("//a/@href")
        assert all(isinstance(node, ValueNode) for node in hrefs)
        assert [node.value() for node in hrefs] == ["/a", "b"]
        assert hrefs[0].find("./x") is None
        assert hrefs[0].find_all("./x") == []

    def test_scalar_xpath_result(self, html_root):
        assert html_root.find("count(//li)").value() == 2.0

    def test_no_match(self, html_root):
        assert html_root.find("//table") is None
        assert html_root.find_all("//table") == []

    def test_regular_expressions_are_rejected(self, html_root):
        with pytest.raises(ExprTypeError):
            html_root.find(".*", "regular")

    def test_malformed_markup_is_tolerated(self):
        root = parse_html(_response("<div><span>unclosed</div><div>second", "text/html"))
        assert [div.value() for div in root.find_all("//div")] == ["unclosed", "second"]


class TestXML:

    def test_xpath(self):
        root = parse_xml(_response(XML_DOC, "application/rss+xml"))
        titles = root.find_all("//item/title")
        assert isinstance(titles[0], XMLNode)
        assert [t.value() for t in titles] == ["First", "Second"]

    def test_value_concatenates_inner_text(self):
        root = parse_xml(_response("<a>x<b>y</b>z</a>", "text/xml"))
        assert root.value() == "xyz"

    def test_css_is_rejected(self):
        root = parse_xml(_response(XML_DOC, "text/xml"))
        with pytest.raises(ExprTypeError):
            root.find("item", "css")


class TestJSON:

    def test_descendant_query(self, json_root):
        titles = json_root.find_all("//book/item/title")
        assert isinstance(titles[0], JSONNode)
        assert [t.value() for t in titles] == ["A", "B"]

    def test_scalar_types_are_restored(self, json_root):
        assert json_root.find("/root/store/open").value() is True
        assert json_root.find("/root/store/owner").value() is None
        assert [p.value() for p in json_root.find_all("//price")] == [8.95, 12]

    def test_invalid_names_become_field_elements(self, json_root):
        assert json_root.find('//field[@name="my key"]').value() == "spaced"

    def test_object_value_is_rebuilt(self, json_root):
        book = json_root.find("//book/item[2]")
        assert book.value() == {"title": "B", "price": 12}

    def test_top_level_array(self):
        root = parse_json(_response('[{"id": 1}, {"id": 2}]', "application/json"))
        assert [node.value() for node in root.find_all("/root/item/id")] == [1, 2]
        assert root.value() == [{"id": 1}, {"id": 2}]

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError):
            parse_json(_response("{broken", "application/json"))


class TestText:

    def test_regular_is_the_default(self):
        root = parse_text(_response("price: 10 USD, price: 20 USD", "text/plain"))
        assert isinstance(root.find(r"\d+"), TextNode)
        assert root.find(r"\d+").value() == "10"
        assert [n.value() for n in root.find_all(r"\d+ USD")] == ["10 USD", "20 USD"]

    def test_matches_can_be_searched_again(self):
        root = parse_text(_response("a=1;b=22", "text/plain"))
        pair = root.find(r"b=\d+")
        assert pair.find(r"\d+").value() == "22"

    def test_no_match_is_none(self):
        root = parse_text(_response("nothing here", "text/plain"))
        assert root.find(r"\d+") is None
        assert root.find_all(r"\d+") == []

    def test_xpath_is_rejected(self):
        root = parse_text(_response("text", "text/plain"))
        with pytest.raises(ExprTypeError):
            root.find("//a", "xpath")


class TestParserRegistry:

    @pytest.mark.parametrize("content_type", [
        "text/html",
        "text/html; charset=utf-8",
        "application/json",
        "application/ld+json",
        "text/plain",
        "application/xml",
        "text/xml",
        "application/rss+xml",
    ])
    def test_default_matches(self, content_type):
        assert ParserRegistry.default().match(content_type)

    @pytest.mark.parametrize("content_type", ["image/png", "application/octet-stream", ""])
    def test_default_rejects(self, content_type):
        assert not ParserRegistry.default().match(content_type)

    @pytest.mark.parametrize("content_type,node_class", [
        ("text/html", HTMLNode),
        ("application/json", JSONNode),
        ("text/plain", TextNode),
    ])
    def test_parse_selects_node_kind(self, content_type, node_class):
        body = JSON_DOC if node_class is JSONNode else "<p>x</p>"
        root = ParserRegistry.default().parse(Rules(), _response(body, content_type))
        assert isinstance(root, node_class)

    def test_parse_xml(self):
        root = ParserRegistry.default().parse(Rules(), _response(XML_DOC, "application/xml"))
        assert isinstance(root, XMLNode)

    def test_unknown_content_type(self):
        with pytest.raises(NotMatchError) as exc_info:
            ParserRegistry.default().parse(Rules(), _response("x", "image/png"))
        assert exc_info.value.content_type == "image/png"

    def test_invalid_pattern(self):
        with pytest.raises(re.error):
            ParserRegistry().set("(unclosed", parse_text)

    def test_first_registration_wins_and_same_pattern_replaces(self):
        registry = ParserRegistry()
        registry.set(r"^text/", parse_text)
        registry.set(r"^text/html", parse_html)
        assert isinstance(registry.parse(Rules(), _response("<p>x</p>", "text/html")), TextNode)

        registry.set(r"^text/", parse_html)
        assert len(registry) == 2
        assert isinstance(registry.parse(Rules(), _response("<p>x</p>", "text/html")), HTMLNode)

    def test_clear(self):
        registry = ParserRegistry.default()
        registry.clear()
        assert len(registry) == 0
        assert not registry.match("text/html")


@pytest.mark.parametrize("content_type,expected", [
    ("text/plain; charset=ISO-8859-1", "ISO-8859-1"),
    ('text/html; Charset="utf-8"', "utf-8"),
    ("text/plain", None),
    ("application/json; format=flowed", None),
])
def test_declared_charset(content_type, expected):
    assert declared_charset(content_type) == expected


def test_implied_encoding_is_ignored_without_charset():
    response = Response(url="http://example.com/", status_code=200,
                        headers={"Content-Type": "text/plain"},
                        body="café".encode('utf-8'), encoding="ISO-8859-1")
    assert response.charset is None
    assert parse_text(response).value() == "café"
