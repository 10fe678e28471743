import json

import pytest

from web_harvester.core.errors import (
    ErrorSet,
    HarvestError,
    MaxRedirectsError,
    MustBeNumberError,
    URLCoercionError,
    add_error,
)


def test_collision_keeps_both_errors():
    errs = ErrorSet()
    first = ValueError("first")
    second = ValueError("second")

    errs.add("title", first)
    errs.add("title", second)

    assert errs["title"] is first
    assert errs["title#1"] is second
    assert len(errs) == 2


def test_collision_counter_keeps_increasing():
    errs = ErrorSet()
    for i in range(4):
        errs.add("links", ValueError(str(i)))

    assert errs.keys() == ["links", "links#1", "links#2", "links#3"]


def test_empty_key_and_none_error_are_ignored():
    errs = ErrorSet()
    errs.add("", ValueError("x"))
    errs.add("name", None)

    assert not errs
    assert len(errs) == 0


def test_error_set_is_an_exception():
    errs = ErrorSet({"a": ValueError("boom")})

    with pytest.raises(HarvestError):
        raise errs


def test_nested_serialization():
    inner = ErrorSet({"0": MustBeNumberError("x")})
    errs = ErrorSet()
    errs.add("items", inner)
    errs.add("title", RuntimeError("broken"))

    assert errs.to_dict() == {
        "items": {"0": "must be a number, got str"},
        "title": "broken",
    }
    assert json.loads(str(errs)) == errs.to_dict()


def test_empty_message_serializes_to_class_name():
    errs = ErrorSet({"a": KeyError()})
    assert errs.to_dict() == {"a": "KeyError"}


def test_update_merges_with_suffixes():
    errs = ErrorSet({"a": ValueError("1")})
    other = ErrorSet({"a": ValueError("2"), "b": ValueError("3")})

    errs.update(other)

    assert sorted(errs.keys()) == ["a", "a#1", "b"]


def test_add_error_promotes_plain_exception():
    original = ValueError("original")
    extra = URLCoercionError(5)

    result = add_error(original, "link", extra)

    assert isinstance(result, ErrorSet)
    assert result["#"] is original
    assert result["link"] is extra


def test_add_error_on_none():
    assert add_error(None, "", None) is None

    err = ValueError("x")
    result = add_error(None, "key", err)
    assert isinstance(result, ErrorSet)
    assert result.keys() == ["key"]


def test_add_error_extends_existing_set():
    errs = ErrorSet({"a": ValueError("1")})
    assert add_error(errs, "a", ValueError("2")) is errs
    assert "a#1" in errs


def test_max_redirects_carries_urls():
    err = MaxRedirectsError(2, ["http://a/1", "http://a/2"])
    assert err.limit == 2
    assert err.redirects == ["http://a/1", "http://a/2"]
