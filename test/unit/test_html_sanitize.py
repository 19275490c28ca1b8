from __future__ import annotations

from glpi_ticket_tracker.domain.html_sanitize import (
    decode_entities,
    sanitize_to_safe_html,
    strip_to_plain_text,
)


def test_allow_listed_markup_is_unchanged() -> None:
    assert sanitize_to_safe_html("<p>Hello</p>") == "<p>Hello</p>"
    assert (
        sanitize_to_safe_html("<ul><li><strong>a</strong></li><li><em>b</em></li></ul>")
        == "<ul><li><strong>a</strong></li><li><em>b</em></li></ul>"
    )


def test_entity_encoded_markup_is_decoded_first() -> None:
    assert sanitize_to_safe_html("&#60;p&#62;Hello&#60;/p&#62;") == "<p>Hello</p>"
    assert sanitize_to_safe_html("&lt;p&gt;Hello&lt;/p&gt;") == "<p>Hello</p>"


def test_script_is_unwrapped_and_its_text_kept() -> None:
    out = sanitize_to_safe_html("<p>Hi <script>alert(1)</script>there</p>")
    assert "<script" not in out
    assert out == "<p>Hi alert(1)there</p>"


def test_unknown_elements_are_unwrapped_into_their_kept_parent() -> None:
    out = sanitize_to_safe_html('<div onclick="x()"><custom>World</custom></div>')
    assert out == "<div>World</div>"


def test_javascript_href_is_dropped_but_other_attributes_stay() -> None:
    out = sanitize_to_safe_html('<a href=" JavaScript:alert(1)" rel="noopener">x</a>')
    assert out == '<a rel="noopener" target="_blank">x</a>'


def test_anchor_target_is_forced_to_blank() -> None:
    out = sanitize_to_safe_html('<a href="https://x.example/a" target="_self">x</a>')
    assert out == '<a href="https://x.example/a" target="_blank">x</a>'


def test_per_element_attribute_allow_list() -> None:
    assert (
        sanitize_to_safe_html('<span style="color:red" class="big">t</span>')
        == '<span style="color:red">t</span>'
    )
    assert (
        sanitize_to_safe_html('<img src="a.png" alt="A" onerror="x()">')
        == '<img src="a.png" alt="A">'
    )
    assert (
        sanitize_to_safe_html('<table><tr><td colspan="2" width="9">x</td></tr></table>')
        == '<table><tr><td colspan="2">x</td></tr></table>'
    )


def test_void_elements_and_unclosed_tags() -> None:
    assert sanitize_to_safe_html("<p>a<br/>b</p>") == "<p>a<br>b</p>"
    assert sanitize_to_safe_html("<p>one<p>two") == "<p>one</p><p>two</p>"
    assert sanitize_to_safe_html("<ul><li>a<li>b</ul>") == "<ul><li>a</li><li>b</li></ul>"


def test_stray_br_end_tag_becomes_a_line_break() -> None:
    assert sanitize_to_safe_html("<p>x</br>y</p>") == "<p>x<br>y</p>"


def test_nested_anchor_closes_the_open_one() -> None:
    assert sanitize_to_safe_html("<a href='x'><a href='y'>z</a></a>") == (
        '<a href="x" target="_blank"></a><a href="y" target="_blank">z</a>'
    )


def test_tag_cut_off_at_end_of_input_is_dropped() -> None:
    assert sanitize_to_safe_html("x <b") == "x "
    assert sanitize_to_safe_html("<p>x</p><a href='y") == "<p>x</p>"
    assert sanitize_to_safe_html("x <") == "x &lt;"


def test_leading_whitespace_and_empty_input() -> None:
    assert sanitize_to_safe_html("  \n<p>x</p>") == "<p>x</p>"
    assert sanitize_to_safe_html(None) == ""
    assert sanitize_to_safe_html("") == ""


def test_strip_to_plain_text_drops_all_markup() -> None:
    assert strip_to_plain_text("&#60;b&#62;Printer&#60;/b&#62; broken ") == "Printer broken"
    assert strip_to_plain_text("  Plain  ") == "Plain"
    assert strip_to_plain_text(None) == ""


def test_decode_entities() -> None:
    assert decode_entities("Tom &amp; Jerry") == "Tom & Jerry"
    assert decode_entities(None) == ""
