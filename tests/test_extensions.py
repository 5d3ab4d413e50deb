from __future__ import annotations

import pytest

from esikit import RequestContext


@pytest.fixture
def context() -> RequestContext:
    return RequestContext.from_request(headers={"Host": "example.com"})


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ('<esi:function name="base64_encode" input="hello"/>', "aGVsbG8="),
        ('<esi:function name="strlen" input="$(HTTP_HOST)"/>', "11"),
        ('<esi:function name="substr" input="example" start="2" length="3"/>', "amp"),
        ('<esi:function name="md5" input="x"/>', ""),
        ('<esi:function input="x"/>', ""),
    ],
)
def test_functions(make_processor, context, source: str, expected: str) -> None:
    assert make_processor().process(source, context) == expected


def test_eval_element(make_processor, context) -> None:
    processor = make_processor()

    assert processor.process("<esi:eval expr=\"'hello' == 'hello'\"/>", context) == "true"
    assert processor.process("<esi:eval expr=\"'hello' == 'world'\"/>", context) == "false"
    assert processor.process('<esi:eval expr="$(HTTP_HOST)"/>', context) == "example.com"
    assert processor.process("<p><esi:eval/></p>", context) == "<p></p>"


def test_assign_from_body_and_value(make_processor, context) -> None:
    source = (
        '<esi:assign name="greeting">hello $(HTTP_HOST)</esi:assign>'
        '<esi:assign name="count" value="3"/>'
        "$(greeting) x$(count)"
    )

    assert make_processor().process(source, context) == "hello example.com x3"


def test_assign_without_name_is_dropped(make_processor, context) -> None:
    assert make_processor().process('<p><esi:assign value="x"/></p>', context) == "<p></p>"


def test_dictionary_returns_default(make_processor, context) -> None:
    source = '<esi:dictionary src="/dict" key="title" default="Untitled"/>'

    assert make_processor().process(source, context) == "Untitled"
    assert make_processor().process('<esi:dictionary key="title"/>', context) == ""


def test_debug_output_requires_debug_flag(make_processor, context) -> None:
    source = '<esi:assign name="x" value="1"/><esi:debug type="vars"/>'

    assert make_processor().process(source, context) == ""
    assert make_processor(debug=True).process(source, context) == (
        "<!-- ESI DEBUG: Variables: x=1 -->"
    )


def test_debug_output_for_cookies_and_text(make_processor) -> None:
    context = RequestContext(headers={"Cookie": "a=1; b=2", "Host": "example.com"})
    processor = make_processor(debug=True)

    assert processor.process('<esi:debug type="cookies"/>', context) == (
        "<!-- ESI DEBUG: Cookies: a=1 b=2 -->"
    )
    assert processor.process("<esi:debug>host\n  $(HTTP_HOST)</esi:debug>", context) == (
        "<!-- ESI DEBUG: host example.com -->"
    )


def test_extension_elements_ignored_without_extensions(make_processor, context) -> None:
    source = '<esi:eval expr="1"></esi:eval>'

    assert make_processor(profile="extended").process(source, context) == source


def test_extension_results_feed_later_phases(make_processor, session, context) -> None:
    session.add("http://example.com/fr/home", "Accueil")
    source = (
        '<esi:assign name="lang" value="fr"/>'
        "<esi:choose>"
        "<esi:when test=\"$(lang) == 'fr'\">"
        '<esi:include src="/$(lang)/home"/>'
        "</esi:when>"
        "<esi:otherwise>Home</esi:otherwise>"
        "</esi:choose>"
    )

    assert make_processor().process(source, context) == "Accueil"
