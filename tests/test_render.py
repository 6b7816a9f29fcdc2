import pytest

from vaultnote.core.errors import InvalidEncoding
from vaultnote.core.render import render


def test_bullet_list_markup():
    assert render("- milk\n- eggs") == "<ul>\n<li>milk</li>\n<li>eggs</li>\n</ul>\n"


def test_render_is_deterministic():
    text = "# Title\n\nSome *text* with a [link](https://example.com) and <me@example.com>.\n"
    first = render(text)
    assert first == render(text)
    assert "<h1>Title</h1>" in first


def test_email_autolink_is_plain_mailto():
    html = render("<me@example.com>")
    assert 'href="mailto:me@example.com"' in html
    assert render("<me@example.com>") == html


def test_script_tag_is_escaped():
    html = render("<script>alert(1)</script>")
    assert "<script" not in html.lower()
    assert "&lt;script&gt;" in html


def test_inline_html_is_escaped():
    html = render("hello <img src=x onerror=alert(1)> there")
    assert "<img" not in html
    assert "&lt;img" in html


def test_javascript_links_are_neutralized():
    html = render("[click](javascript:alert(1))")
    assert 'href="javascript:' not in html


@pytest.mark.parametrize("text,attr", [
    ("[x](javascript&#58;alert(1))", "href"),
    ("[x](javascript&colon;alert(1))", "href"),
    ("[x](javascript&#x3A;alert(1))", "href"),
    ("[x](JaVaScRiPt&#58;alert(1))", "href"),
    ("[x][evil]\n\n[evil]: javascript&#58;alert(1)\n", "href"),
    ("![i](javascript&#58;alert(1))", "src"),
    ("![i](data&#58;text/html;base64,PHNjcmlwdD4=)", "src"),
])
def test_encoded_unsafe_schemes_are_neutralized(text, attr):
    html = render(text)
    assert f'{attr}="#"' in html
    assert "javascript&" not in html.lower()
    assert "data&#58;" not in html


@pytest.mark.parametrize("text,target", [
    ("[site](https://example.com/a?b=1)", "https://example.com/a?b=1"),
    ("[anchor](#top)", "#top"),
])
def test_safe_link_targets_are_kept(text, target):
    assert f'="{target}"' in render(text)


def test_bytes_input_is_decoded_as_utf8():
    assert render("café *x*".encode("utf-8")) == render("café *x*")


def test_undecodable_bytes_fail_with_invalid_encoding():
    with pytest.raises(InvalidEncoding):
        render(b"\xff\xfe broken")


def test_lone_surrogate_fails_with_invalid_encoding():
    with pytest.raises(InvalidEncoding):
        render("bad \udc80 char")


@pytest.mark.parametrize("text", [
    "```\nnever closed",
    "[dangling](",
    "| a |\n|--",
    "****",
    "",
    "> > > deep\n>",
])
def test_unusual_markdown_never_raises(text):
    assert isinstance(render(text), str)


def test_non_text_input_is_a_type_error():
    with pytest.raises(TypeError):
        render(42)
