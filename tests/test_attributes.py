import pytest

from beautyhttp.attributes import Attribute, Attributes


def test_string_and_default():
    assert Attribute("value").as_string() == "value"
    assert Attribute().as_string("index.html") == "index.html"
    assert Attribute("x").as_string("index.html") == "x"


def test_integer_conversion():
    assert Attribute("42").as_integer() == 42
    assert Attribute("").as_integer(7) == 7
    assert Attribute("12abc").as_integer() == 12


def test_integer_invalid_raises():
    with pytest.raises(ValueError):
        Attribute("abc").as_integer()


def test_integer_overflow_raises():
    with pytest.raises(OverflowError):
        Attribute("99999999999").as_integer()


def test_double_conversion():
    assert Attribute("2.5").as_double() == 2.5
    assert Attribute("").as_double(1.5) == 1.5
    with pytest.raises(ValueError):
        Attribute("nope").as_double()


@pytest.mark.parametrize("text", ["1", "true", "yes"])
def test_boolean_true_values(text):
    assert Attribute(text).as_boolean() is True


def test_boolean_false_and_default():
    assert Attribute("no").as_boolean(True) is False
    assert Attribute("").as_boolean(True) is True


def test_equality():
    assert Attribute("there") == "there"
    assert Attribute("there") == Attribute("there")
    assert not (Attribute("there") == "here")


def test_parse_query_string():
    attrs = Attributes("id=306&name=bob")
    assert attrs["id"].as_integer() == 306
    assert attrs["name"] == "bob"
    assert sorted(attrs) == ["id", "name"]


def test_parse_custom_separator():
    attrs = Attributes("a=1;b=2", sep=";")
    assert dict((k, v.value) for k, v in attrs.items()) == {"a": "1", "b": "2"}


def test_missing_key_is_empty():
    attrs = Attributes("a=1")
    assert attrs["missing"].as_string() == ""
    assert attrs.find("missing") is None
    assert attrs.find("a") == "1"


def test_insert_replaces():
    attrs = Attributes()
    attrs.insert("k", "first")
    attrs.insert("k", "second")
    assert attrs["k"] == "second"
    assert len(attrs) == 1


def test_key_without_value():
    attrs = Attributes("flag&x=")
    assert "flag" in attrs
    assert attrs["flag"].as_boolean(True) is True