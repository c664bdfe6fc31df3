"""
Cookie reader and token cache.

- read_token finds XSRF-TOKEN anywhere in a cookie string, any case
- values are URL-decoded; empty values count as absent
- cookie_string renders a jar like document.cookie
"""

import httpx

from src.bizdesk.cookies import TokenCache, cookie_string, read_token


def test_read_token_finds_cookie_among_others():
    assert read_token("laravel_session=abc; XSRF-TOKEN=tok123; theme=dark") == "tok123"


def test_read_token_is_case_insensitive():
    assert read_token("xsrf-token=lower") == "lower"
    assert read_token("Xsrf-Token=mixed") == "mixed"


def test_read_token_url_decodes_value():
    assert read_token("XSRF-TOKEN=eyJpdiI6%3D%3D") == "eyJpdiI6=="


def test_read_token_keeps_equals_signs_inside_value():
    assert read_token("XSRF-TOKEN=a=b=c") == "a=b=c"


def test_read_token_missing_or_empty_returns_none():
    assert read_token("") is None
    assert read_token(None) is None
    assert read_token("session=abc") is None
    assert read_token("XSRF-TOKEN=; other=1") is None


def test_read_token_does_not_match_name_suffix():
    assert read_token("MY-XSRF-TOKEN=nope") is None


def test_read_token_custom_name():
    assert read_token("csrftoken=x; XSRF-TOKEN=y", name="csrftoken") == "x"


def test_cookie_string_renders_jar():
    jar = httpx.Cookies()
    jar.set("XSRF-TOKEN", "tok", domain="example.com")
    jar.set("session", "s1", domain="example.com")
    rendered = cookie_string(jar)
    assert "XSRF-TOKEN=tok" in rendered
    assert "session=s1" in rendered
    assert read_token(rendered) == "tok"


def test_token_cache_get_set_clear():
    cache = TokenCache()
    assert cache.get() is None
    cache.set("abc")
    assert cache.get() == "abc"
    cache.clear()
    assert cache.get() is None
    assert cache.acquisition is None
