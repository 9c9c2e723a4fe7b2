from log4scan.core.models import GET, POST, JSON, HEADER, QUERY, FIELD, FIXED, WORDLIST
from log4scan.core.surface import DEFAULT_HEADERS, DEFAULT_FIELDS, enumerate_injection_points


def test_default_get_points_are_headers_only(make_options):
    points = enumerate_injection_points(make_options())
    assert [p.name for p in points] == ["User-Agent"] + DEFAULT_HEADERS
    assert all(p.request_type == GET and p.surface == HEADER for p in points)


def test_user_agent_can_be_excluded(make_options):
    points = enumerate_injection_points(make_options(no_user_agent_fuzzing=True))
    assert "User-Agent" not in [p.name for p in points]


def test_user_agent_added_to_custom_headers(make_options):
    points = enumerate_injection_points(make_options(headers=("X-Custom",)))
    assert [p.name for p in points] == ["User-Agent", "X-Custom"]


def test_post_and_json_use_fields(make_options):
    opts = make_options(request_types=(POST, JSON), headers=("X-A",))
    points = enumerate_injection_points(opts)
    fields = [p for p in points if p.surface == FIELD]
    assert [p.name for p in fields if p.request_type == POST] == DEFAULT_FIELDS
    assert [p.name for p in fields if p.request_type == JSON] == DEFAULT_FIELDS
    assert not [p for p in points if p.surface == QUERY]


def test_get_uses_params(make_options):
    points = enumerate_injection_points(make_options(params=("q", "id")))
    assert [p.name for p in points if p.surface == QUERY] == ["q", "id"]


def test_fixed_value_wins_over_wordlist(make_options):
    opts = make_options(headers=("X-Api-Version", "Referer"),
                        header_values={"x-api-version": "v{{payload}}"})
    points = enumerate_injection_points(opts)
    api = [p for p in points if p.name.lower() == "x-api-version"]
    assert len(api) == 1
    assert api[0].value_source == FIXED
    assert api[0].fixed_value == "v{{payload}}"
    assert [p.value_source for p in points if p.name == "Referer"] == [WORDLIST]


def test_no_duplicates(make_options):
    opts = make_options(request_types=(GET, POST), headers=("X-A", "x-a", "X-A"),
                        params=("q", "q"), fields=("user", "user"))
    points = enumerate_injection_points(opts)
    assert len({p.key for p in points}) == len(points)


def test_enumeration_is_deterministic(make_options):
    opts = make_options(request_types=(GET, POST, JSON), params=("q",),
                        field_values={"token": "{{payload}}"})
    assert enumerate_injection_points(opts) == enumerate_injection_points(opts)
