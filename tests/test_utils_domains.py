import pytest

from vervain.utils.domains import (
    domain_listed,
    extract_domain,
    extract_hostname,
    extract_plaintext_urls,
    is_same_or_subdomain,
    normalize_domain_entry,
    registered_domain,
)


@pytest.mark.parametrize(
    "email,expected",
    [
        ("Jane@Acme.COM", "acme.com"),
        ("bob@acme.com.", "acme.com"),
        ("  bob@mail.acme.co.uk ", "mail.acme.co.uk"),
        ("not-an-address", ""),
        ("", ""),
    ],
)
def test_extract_domain(email, expected):
    assert extract_domain(email) == expected


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://Login.Acme.com:8443/path?q=1#frag", "login.acme.com"),
        ("http://user:pw@acme.com/", "acme.com"),
        ("acme-login.com/reset", "acme-login.com"),
        ("https://xn--bcher-kva.example/", "bücher.example"),
        ("", ""),
    ],
)
def test_extract_hostname(url, expected):
    assert extract_hostname(url) == expected


def test_extract_plaintext_urls_strips_trailing_punctuation():
    text = "Visit https://acme-pay.com/invoice. Or (http://acme.com.evil.net/y), thanks!"
    assert extract_plaintext_urls(text) == [
        "https://acme-pay.com/invoice",
        "http://acme.com.evil.net/y",
    ]
    assert extract_plaintext_urls("no links here") == []


def test_registered_domain_handles_multi_label_suffixes():
    assert registered_domain("mail.acme.co.uk") == "acme.co.uk"
    assert registered_domain("login.acme.com") == "acme.com"
    assert registered_domain("") == ""


def test_normalize_domain_entry():
    assert normalize_domain_entry("https://WWW.Acme.com/about") == "www.acme.com"
    assert normalize_domain_entry("billing@acme.com") == "acme.com"
    assert normalize_domain_entry(" acme.com ") == "acme.com"
    assert normalize_domain_entry("") == ""


def test_domain_listed_matches_host_or_registrable():
    entries = {"acme.com", "partner.example.org"}
    assert domain_listed("acme.com", entries)
    assert domain_listed("mail.acme.com", entries)
    assert domain_listed("partner.example.org", entries)
    assert not domain_listed("other.example.org", entries)
    assert not domain_listed("acme.com", set())


def test_is_same_or_subdomain():
    assert is_same_or_subdomain("acme.com", "acme.com")
    assert is_same_or_subdomain("www.acme.com", "acme.com")
    assert not is_same_or_subdomain("notacme.com", "acme.com")
    assert not is_same_or_subdomain("acme.com.evil.net", "acme.com")
    assert not is_same_or_subdomain("", "acme.com")
