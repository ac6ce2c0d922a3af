"""Tests for embedded payload extraction."""
import json

import pytest
from selectolax.parser import HTMLParser

from substack_dl.fetch.errors import DecodeError, ExtractionError
from substack_dl.parse.models import Post, PostWrapper
from substack_dl.parse.preload import (
    decode_post,
    extract_json_string,
    parse_preloaded_post,
    slice_payload,
    unescape_payload,
)


def test_extract_json_string_returns_escaped_payload(sample_post, page_factory):
    html = page_factory(sample_post)
    escaped = extract_json_string(HTMLParser(html))

    expected = json.dumps(json.dumps({"post": sample_post.model_dump()}))[1:-1]
    assert escaped == expected


def test_round_trip_reconstructs_post(sample_post, page_factory):
    """Post -> embedded page -> Post gives back the same record."""
    post = parse_preloaded_post(HTMLParser(page_factory(sample_post)))
    assert post == sample_post


def test_round_trip_with_quotes_and_unicode(post_factory, page_factory):
    original = post_factory(
        title='He said "hello" at the café',
        body_html='<p class="x">Back\\slash and "quotes"</p>',
    )
    post = parse_preloaded_post(HTMLParser(page_factory(original)))
    assert post == original


def test_missing_script_is_extraction_error():
    parser = HTMLParser("<html><body><p>No script here</p></body></html>")
    with pytest.raises(ExtractionError, match="failed to extract JSON string"):
        extract_json_string(parser)


def test_script_without_marker_is_ignored():
    html = '<script>var x = JSON.parse("{}")</script>'
    with pytest.raises(ExtractionError):
        extract_json_string(HTMLParser(html))


def test_malformed_script_is_extraction_error():
    html = """
    <html><body>
    <script>
      window._preloads = JSON.parse("incomplete
    </script>
    </body></html>"""
    with pytest.raises(ExtractionError):
        extract_json_string(HTMLParser(html))


def test_slice_payload_uses_first_open_and_last_close():
    text = 'window._preloads = JSON.parse("{\\"a\\": \\"x\\")\\"}")'
    assert slice_payload(text) == '{\\"a\\": \\"x\\")\\"}'


def test_slice_payload_rejects_close_before_open():
    with pytest.raises(ExtractionError):
        slice_payload('") window._preloads = JSON.parse("abc')


def test_unescape_rejects_malformed_escaping():
    with pytest.raises(ExtractionError):
        unescape_payload('{\\"post\\": \\q}')


def test_decode_post_errors():
    with pytest.raises(DecodeError):
        decode_post("not json")
    with pytest.raises(DecodeError):
        decode_post('{"no_post": {}}')
    with pytest.raises(DecodeError):
        decode_post('{"post": {"id": "not-a-number"}}')


def test_decode_post_tolerates_nulls_and_extra_keys():
    raw = json.dumps({
        "post": {"id": 7, "title": "T", "subtitle": None, "cover_image": None, "audience": "everyone"},
        "pub": {"name": "x"},
    })
    post = decode_post(raw)
    assert post.id == 7
    assert post.subtitle == ""
    assert post.cover_image == ""


def test_post_wrapper_shape(sample_post):
    wrapper = PostWrapper.model_validate({"post": sample_post.model_dump()})
    assert isinstance(wrapper.post, Post)
    assert wrapper.post.slug == "test-post"


def test_post_summary_prefers_subtitle(post_factory):
    assert post_factory(subtitle="Sub", description="Desc").summary == "Sub"
    assert post_factory(subtitle="", description="Desc").summary == "Desc"
    assert post_factory(subtitle="", description="").summary is None
