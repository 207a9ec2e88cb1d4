import pytest

from site_timer.errors import MalformedHostnameError
from site_timer.hostnames import hostname_from_url, normalize_hostname


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://www.Example.com/path?q=1", "www.example.com"),
        ("http://localhost:8000/", "localhost"),
        ("https://user:pw@sub.domain.co.uk", "sub.domain.co.uk"),
        ("http://[::1]:8080/", "::1"),
        ("chrome://newtab/", "newtab"),
    ],
)
def test_hostname_from_url(url, expected):
    assert hostname_from_url(url) == expected


@pytest.mark.parametrize(
    "url",
    ["", "   ", "not a url", "about:blank", "https://", "http://bad host/", None, 42],
)
def test_hostname_from_url_rejects_malformed(url):
    with pytest.raises(MalformedHostnameError):
        hostname_from_url(url)


def test_malformed_hostname_is_value_error():
    with pytest.raises(ValueError):
        hostname_from_url("::::")


def test_normalize_hostname_accepts_bare_names():
    assert normalize_hostname("  News.Example.org ") == "news.example.org"
    assert normalize_hostname("https://a.com/x") == "a.com"
