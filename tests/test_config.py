import pytest

from log4scan.core.config import ScanOptions, parse_basic_auth, parse_request_types
from log4scan.core.errors import ConfigError
from log4scan.core.models import GET, POST, JSON, REQUEST_TYPES
from log4scan.main import build_parser, duration
from log4scan.parsers.wordlist import load_wordlist, merge_entries, parse_key_values


def _args(*extra):
    return build_parser().parse_args(["url", "http://example.test/", *extra])


def test_wordlist_skips_blanks_and_comments(tmp_path):
    path = tmp_path / "headers.txt"
    path.write_text("# headers\nX-One\n\n  X-Two  \n#X-Three\n")
    assert load_wordlist(str(path)) == ["X-One", "X-Two"]


def test_missing_wordlist_is_config_error(tmp_path):
    with pytest.raises(ConfigError):
        load_wordlist(str(tmp_path / "nope.txt"))


def test_merge_keeps_literals_first(tmp_path):
    path = tmp_path / "fields.txt"
    path.write_text("b\na\n")
    assert merge_entries(["a", "c"], str(path)) == ["a", "c", "b"]


def test_key_values_split_on_first_equals():
    assert parse_key_values(["token=a=b", "empty="]) == {"token": "a=b", "empty": ""}


@pytest.mark.parametrize("pair", ["novalue", "=value"])
def test_bad_key_value(pair):
    with pytest.raises(ConfigError):
        parse_key_values([pair], "--set-field")


def test_basic_auth():
    assert parse_basic_auth("user:pa:ss") == ("user", "pa:ss")
    assert parse_basic_auth(None) is None
    with pytest.raises(ConfigError):
        parse_basic_auth("nocolon")


def test_request_types_comma_and_repeat():
    assert parse_request_types(["get,post", "post", "JSON"]) == (GET, POST, JSON)
    assert parse_request_types(None) == (GET,)


def test_duration():
    assert duration("5") == 5
    assert duration("500ms") == 0.5
    assert duration("2m") == 120


def test_missing_caddr():
    with pytest.raises(ConfigError):
        ScanOptions.from_args(_args())


@pytest.mark.parametrize("overrides", [
    {"catcher_type": "http"},
    {"request_types": ("put",)},
    {"request_types": ()},
    {"resource": "a/b"},
    {"resource": "a.b"},
    {"max_threads": 0},
    {"timeout": 0},
    {"wait": -1},
])
def test_invalid_options(overrides):
    with pytest.raises(ConfigError):
        ScanOptions(caddr="10.0.0.5:53", **overrides)


def test_from_args(tmp_path):
    path = tmp_path / "params.txt"
    path.write_text("id\n")
    opts = ScanOptions.from_args(_args(
        "--caddr", "10.0.0.5:53", "-t", "get,post", "--param", "q", "--params-file", str(path),
        "--set-header", "X-Api-Version=v{{payload}}", "--basic-auth", "u:p",
        "--wait", "2s", "--timeout", "500ms", "--catcher-type", "ldap",
    ))
    assert opts.request_types == (GET, POST)
    assert opts.params == ("q", "id")
    assert opts.header_values == {"X-Api-Version": "v{{payload}}"}
    assert opts.basic_auth == ("u", "p")
    assert opts.wait == 2
    assert opts.timeout == 0.5
    assert opts.catcher_type == "ldap"
    assert not opts.waf_bypass


def test_all_enables_every_check():
    opts = ScanOptions.from_args(_args("--caddr", "10.0.0.5:53", "--all"))
    assert opts.auth_fuzzing and opts.form_fuzzing
    assert opts.waf_bypass and opts.check_cve_2021_45046
    assert opts.request_types == REQUEST_TYPES


def test_catcher_none_is_inactive():
    assert not ScanOptions(caddr="10.0.0.5", catcher_type="none").catcher_active
    assert ScanOptions(caddr="10.0.0.5").catcher_active


def test_wordlist_with_invalid_utf8_is_config_error(tmp_path):
    path = tmp_path / "headers.txt"
    path.write_bytes(b"X-Good\nX-\xff\n")
    with pytest.raises(ConfigError):
        load_wordlist(str(path))
