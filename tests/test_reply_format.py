from chatgate.reply_format import clean_reply, extract_scroll_marker, format_bullet_points, remove_citations


def test_remove_citations():
    raw = "We place engineers【4:0†source】 and nurses [3:1†guide.pdf] fast [2]. See †brochure.pdf  now."
    assert remove_citations(raw) == "We place engineers and nurses fast . See now."


def test_single_dash_is_left_alone():
    assert format_bullet_points("Pay is great - really") == "Pay is great - really"


def test_inline_bullets_become_lines():
    text = "We offer: - Direct hire - Contract staffing - Executive search"
    assert format_bullet_points(text) == (
        "We offer:\n\n- Direct hire\n- Contract staffing\n- Executive search"
    )


def test_lowercase_continuation_is_not_split():
    text = "Options. - Direct hire - temp-to-hire - Contract"
    assert format_bullet_points(text) == "Options.\n\n- Direct hire - temp-to-hire\n- Contract"


def test_scroll_marker_extracted():
    assert extract_scroll_marker("Fill out the form below! [SCROLL_TO_FORM]") == ("Fill out the form below!", True)
    assert extract_scroll_marker(" plain ") == ("plain", False)


def test_clean_reply_pipeline():
    raw = "Happy to help【1:2†faq】! We cover: - Healthcare - Tech [SCROLL_TO_FORM]"
    reply, scroll = clean_reply(raw)
    assert scroll is True
    assert "【" not in reply
    assert "[SCROLL_TO_FORM]" not in reply
    assert reply == "Happy to help! We cover:\n\n- Healthcare\n- Tech"
