"""Tests for sanitize module."""

from wwfm.sanitize import (
    MODES,
    sanitize_editorial_content,
    sanitize_editorial_with_embeds,
    sanitize_html,
    sanitize_tracklist,
)


def test_sanitize_strips_scripts_and_styles():
    result = sanitize_html("<p>Hi</p><script>alert('x')</script><style>.x{}</style>")
    assert result == "<p>Hi</p>"


def test_sanitize_strips_event_handlers():
    result = sanitize_html('<p onclick="steal()">Text</p>')
    assert "onclick" not in result
    assert "Text" in result


def test_sanitize_drops_javascript_urls():
    result = sanitize_html('<a href="javascript:alert(1)">x</a><a href="https://ok.example">y</a>')
    assert "javascript" not in result
    assert 'href="https://ok.example"' in result


def test_sanitize_drops_obfuscated_scheme():
    result = sanitize_html('<a href=" java\tscript:alert(1)">x</a>')
    assert "href" not in result


def test_sanitize_keeps_relative_links():
    assert 'href="/shows"' in sanitize_html('<a href="/shows">Shows</a>')


def test_sanitize_unwraps_unknown_tags():
    result = sanitize_html("<blink><b>bold</b></blink>")
    assert result == "<b>bold</b>"


def test_sanitize_removes_comments():
    assert sanitize_html("<p>a<!-- secret --></p>") == "<p>a</p>"


def test_sanitize_empty_input():
    assert sanitize_html(None) == ""
    assert sanitize_html("") == ""
    assert sanitize_html(123) == ""


def test_tracklist_keeps_tables_and_data_attributes():
    result = sanitize_tracklist('<table><tr><td data-track="1">Song</td></tr></table>')
    assert "<table>" in result
    assert 'data-track="1"' in result


def test_editorial_unwraps_tables_and_drops_style():
    result = sanitize_editorial_content('<table><tr><td>Cell</td></tr></table><p style="color:red">P</p>')
    assert "<table>" not in result
    assert "Cell" in result
    assert "style" not in result


def test_embeds_keep_iframes():
    html = '<iframe src="https://www.youtube.com/embed/x" allowfullscreen=""></iframe>'
    result = sanitize_editorial_with_embeds(html)
    assert "<iframe" in result
    assert "allowfullscreen" in result
    assert "<iframe" not in sanitize_editorial_content(html)


def test_embeds_remove_embed_cards():
    html = '<p>Intro</p><a class="embedly-card" href="https://x.example">card</a>'
    result = sanitize_editorial_with_embeds(html)
    assert "card" not in result
    assert "Intro" in result


def test_modes_registry():
    assert set(MODES) == {"default", "tracklist", "editorial", "embeds"}
