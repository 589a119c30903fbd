import json

from pixcap_cli.web.session import (
    load_cookie_bundle,
    save_cookie_bundle,
    to_playwright_cookie,
)


def test_missing_or_corrupt_bundle_is_empty(tmp_path):
    assert load_cookie_bundle(tmp_path / "cookies.json") == []

    corrupt = tmp_path / "corrupt.json"
    corrupt.write_text("{oops", encoding="utf-8")
    assert load_cookie_bundle(corrupt) == []

    not_a_list = tmp_path / "object.json"
    not_a_list.write_text(json.dumps({"name": "sid"}), encoding="utf-8")
    assert load_cookie_bundle(not_a_list) == []


def test_bundle_round_trip(tmp_path):
    path = tmp_path / "nested" / "cookies.json"
    cookies = [{"name": "sid", "value": "abc", "domain": ".pixcap.com"}]

    save_cookie_bundle(path, cookies)

    assert load_cookie_bundle(path) == cookies


def test_cookie_conversion():
    converted = to_playwright_cookie(
        {
            "name": "sid",
            "value": 42,
            "domain": ".pixcap.com",
            "expires": 1893456000,
            "sameSite": "Lax",
            "secure": 1,
        }
    )
    assert converted == {
        "name": "sid",
        "value": "42",
        "domain": ".pixcap.com",
        "path": "/",
        "httpOnly": False,
        "secure": True,
        "expires": 1893456000.0,
        "sameSite": "Lax",
    }


def test_session_cookies_and_invalid_fields_are_dropped():
    converted = to_playwright_cookie(
        {"name": "sid", "value": "x", "domain": "pixcap.com", "expires": -1, "sameSite": "bogus"}
    )
    assert "expires" not in converted
    assert "sameSite" not in converted
    assert to_playwright_cookie({"name": "sid", "value": "x"}) is None
    assert to_playwright_cookie({"value": "x", "domain": "pixcap.com"}) is None
