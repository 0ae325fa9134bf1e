import pytest

from axe_reporter.errors import IntakeError
from axe_reporter.workflows.intake import (
    filter_urls,
    is_url_allowed,
    load_url_list,
    normalize_url,
    parse_domain_rule,
    parse_ip_host,
    parse_url_lines,
)
from axe_reporter.workflows.reporter_config import DEFAULT_BLOCKED_DOMAINS


def test_parse_url_lines_skips_blank_and_comments():
    text = "# header\n\n  https://example.com/a  \n\t\nhttps://example.com/b\n"
    assert parse_url_lines(text) == ["https://example.com/a", "https://example.com/b"]


@pytest.mark.parametrize(
    "candidate",
    [
        "not a url",
        "example.com/path",
        "ftp://example.com/file",
        "javascript:alert(1)",
        "http://",
        "http://[::1",
        "http://example.com:99999/",
        "https:///nohost",
        "",
    ],
)
def test_normalize_url_rejects_malformed(candidate):
    assert normalize_url(candidate) is None


def test_normalize_url_lowercases_host_and_drops_fragment():
    assert normalize_url("HTTPS://Example.COM/Path?q=1#frag") == "https://example.com/Path?q=1"
    assert normalize_url("http://example.com") == "http://example.com/"
    assert normalize_url("http://bücher.example/") == "http://xn--bcher-kva.example/"
    assert normalize_url("http://[::1]:8080/x") == "http://[::1]:8080/x"


@pytest.mark.parametrize(
    "url",
    [
        "http://localhost/",
        "http://LOCALHOST:3000/admin",
        "http://api.localhost/",
        "http://127.0.0.1/",
        "http://127.8.9.10:8080/",
        "http://0.0.0.0/",
        "http://0.1.2.3/",
        "http://0/",
        "http://[::]/",
        "http://[0:0:0:0:0:0:0:0]:8080/",
        "http://[::1]/",
        "http://[0:0:0:0:0:0:0:1]/",
        "http://[::ffff:127.0.0.1]/",
        "http://169.254.169.254/latest/meta-data/",
        "http://2130706433/",
        "http://0x7f.1/",
        "http://127.1/",
    ],
)
def test_default_blocked_list_rejects_internal_targets(url):
    assert is_url_allowed(url, (), DEFAULT_BLOCKED_DOMAINS) is False


def test_blocked_hostname_matches_exact_and_subdomains_only():
    blocked = ["example.com"]
    assert is_url_allowed("https://example.com/", (), blocked) is False
    assert is_url_allowed("https://www.example.com/", (), blocked) is False
    assert is_url_allowed("https://badexample.com/", (), blocked) is True
    assert is_url_allowed("https://example.com.evil.org/", (), blocked) is True


def test_blocked_cidr_matches_ipv4_and_ipv6_ranges():
    blocked = ["10.0.0.0/8", "fd00::/8"]
    assert is_url_allowed("http://10.20.30.40/", (), blocked) is False
    assert is_url_allowed("http://11.0.0.1/", (), blocked) is True
    assert is_url_allowed("http://[fd12:3456::1]/", (), blocked) is False
    assert is_url_allowed("http://[2001:db8::1]/", (), blocked) is True


def test_allow_list_requires_a_match_and_blocked_wins():
    allowed = ["example.com", "192.0.2.0/24"]
    blocked = ["private.example.com"]
    assert is_url_allowed("https://docs.example.com/", allowed, blocked) is True
    assert is_url_allowed("http://192.0.2.7/", allowed, blocked) is True
    assert is_url_allowed("https://other.org/", allowed, blocked) is False
    assert is_url_allowed("https://private.example.com/", allowed, blocked) is False


def test_is_url_allowed_never_raises_on_garbage():
    for value in ["", "::::", "http://[::1", "http://%zz/", "\x00", "http://exa mple.com/"]:
        assert is_url_allowed(value, (), DEFAULT_BLOCKED_DOMAINS) in (True, False)
    assert is_url_allowed("https://example.com/", (), ["10.0.0.0/33"]) is False


def test_parse_domain_rule_rejects_bad_entries():
    with pytest.raises(ValueError):
        parse_domain_rule("10.0.0.0/33")
    with pytest.raises(ValueError):
        parse_domain_rule("   ")
    with pytest.raises(ValueError):
        parse_domain_rule("exa mple.com")
    assert parse_domain_rule("[::1]").network is not None
    assert parse_domain_rule(".Example.COM").hostname == "example.com"


def test_parse_ip_host_handles_named_and_numeric_hosts():
    assert parse_ip_host("example.com") is None
    assert str(parse_ip_host("2130706433")) == "127.0.0.1"
    assert str(parse_ip_host("[::1]")) == "::1"
    assert parse_ip_host("999.1.1.1") is None


def test_filter_urls_classifies_disjointly():
    text = "\n".join(
        [
            "https://example.com/",
            "https://example.com/#top",
            "http://localhost/",
            "not a url",
            "https://docs.example.org/a",
        ]
    )
    result = filter_urls(text, (), DEFAULT_BLOCKED_DOMAINS)
    assert result.accepted == ["https://example.com/", "https://docs.example.org/a"]
    assert result.blocked == ["http://localhost/"]
    assert result.invalid == ["not a url"]
    assert result.duplicates == ["https://example.com/#top"]
    assert result.counts() == {"accepted": 2, "invalid": 1, "blocked": 1, "duplicates": 1}


def test_filter_urls_raises_when_nothing_is_accepted(caplog):
    with pytest.raises(IntakeError) as excinfo:
        filter_urls("http://localhost/\n", (), DEFAULT_BLOCKED_DOMAINS)
    assert "blocked=1" in str(excinfo.value)
    assert "http://localhost/" in caplog.text


def test_filter_urls_can_return_empty_for_dry_runs():
    result = filter_urls("", (), (), require_accepted=False)
    assert result.accepted == []


def test_load_url_list_missing_file(tmp_path):
    with pytest.raises(IntakeError):
        load_url_list(tmp_path / "missing.txt")
