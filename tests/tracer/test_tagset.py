from collections import OrderedDict

from hypothesis import given
from hypothesis import strategies as st
import pytest

from ddpropagation.internal._tagset import TagsetDecodeError
from ddpropagation.internal._tagset import TagsetEncodeError
from ddpropagation.internal._tagset import TagsetMaxSizeDecodeError
from ddpropagation.internal._tagset import TagsetMaxSizeEncodeError
from ddpropagation.internal._tagset import decode_tagset_string
from ddpropagation.internal._tagset import encode_tagset_values
from ddpropagation.internal._tagset import is_valid_tag_key
from ddpropagation.internal._tagset import is_valid_tag_value
from ddpropagation.internal._tagset import validate_tag


@pytest.mark.parametrize(
    "header,expected",
    [
        ("", {}),
        ("key=value", {"key": "value"}),
        ("1key=value", {"1key": "value"}),
        ("a=b", {"a": "b"}),
        # Extra trailing comma
        ("key=value,", {"key": "value"}),
        # Values can have spaces and equals
        ("key=value can have spaces", {"key": "value can have spaces"}),
        ("key=value=value", {"key": "value=value"}),
        # Leading/trailing spaces are removed
        ("key= value ", {"key": "value"}),
        (" key =value", {"key": "value"}),
        ("tenant@vendor=value", {"tenant@vendor": "value"}),
        ("a=1,b=2,c=3", {"a": "1", "b": "2", "c": "3"}),
        # Last value wins
        ("a=1,a=2", {"a": "2"}),
        (
            "_dd.p.dm=-4,_dd.p.usr.id=baz64==,_dd.p.tid=640cfd8d00000000",
            {"_dd.p.dm": "-4", "_dd.p.usr.id": "baz64==", "_dd.p.tid": "640cfd8d00000000"},
        ),
    ],
)
def test_decode_tagset_string(header, expected):
    assert decode_tagset_string(header) == expected


@pytest.mark.parametrize(
    "header",
    [
        "key",
        "key=",
        "key=,",
        "=",
        ",",
        ",,",
        "=value",
        # Extra leading comma
        ",key=value",
        "key=value,,",
        "key=value,value",
        # Spaces are not allowed in keys
        "key with spaces=value",
        # Non-space whitespace characters are not allowed in key or value
        "key=value\r\n",
        "key\t=value",
        "key=välue",
    ],
)
def test_decode_tagset_string_malformed(header):
    with pytest.raises(TagsetDecodeError):
        decode_tagset_string(header)


def test_decode_tagset_string_max_size():
    header = "_dd.p.test=" + "a" * 501
    assert len(header) == 512
    assert decode_tagset_string(header) == {"_dd.p.test": "a" * 501}

    with pytest.raises(TagsetMaxSizeDecodeError) as ex_info:
        decode_tagset_string(header + "a")
    assert ex_info.value.max_size == 512
    assert ex_info.value.value == header + "a"
    # oversized values are reported as decode errors too
    assert isinstance(ex_info.value, TagsetDecodeError)

    assert decode_tagset_string(header + "a", max_size=None) == {"_dd.p.test": "a" * 502}


@pytest.mark.parametrize(
    "values,expected",
    [
        ({}, ""),
        ({"key": "value"}, "key=value"),
        ({"key": "value=with=equals"}, "key=value=with=equals"),
        # DEV: Use OrderedDict to ensure consistent iteration for encoding
        (OrderedDict([("a", "1"), ("b", "2"), ("c", "3")]), "a=1,b=2,c=3"),
        ({"_dd.p.dm": "-4"}, "_dd.p.dm=-4"),
    ],
)
def test_encode_tagset_values(values, expected):
    header = encode_tagset_values(values)
    assert header == expected
    assert decode_tagset_string(header) == values


def test_encode_tagset_values_strip_spaces():
    res = encode_tagset_values({" key ": " value "})
    assert res == "key=value"


@pytest.mark.parametrize(
    "values",
    [
        {"key with spaces": "value"},
        {"key,with,commas": "value"},
        {"key": "value,with,commas"},
        {"key=with=equals": "value"},
        {"": "value"},
        {"key": ""},
        {"key": "   "},
        {"☺️": "value"},
        {"key": "☺️"},
    ],
)
def test_encode_tagset_values_malformed(values):
    with pytest.raises(TagsetEncodeError):
        encode_tagset_values(values)


def test_encode_tagset_values_max_size():
    # DEV: Use OrderedDict to ensure consistent iteration for encoding
    values = OrderedDict([("a", "1"), ("b", "2"), ("somereallylongkey", "somereallyreallylongvalue")])
    with pytest.raises(TagsetMaxSizeEncodeError) as ex_info:
        encode_tagset_values(values, max_size=10)

    ex = ex_info.value
    assert ex.values == values
    assert ex.max_size == 10
    # partial results are only reported on the exception
    assert ex.current_results == "a=1,b=2"


def test_encode_tagset_values_exact_max_size():
    assert encode_tagset_values(OrderedDict([("a", "1"), ("b", "2")]), max_size=7) == "a=1,b=2"
    with pytest.raises(TagsetMaxSizeEncodeError):
        encode_tagset_values(OrderedDict([("a", "1"), ("b", "2")]), max_size=6)


def test_encode_tagset_values_invalid_type():
    for values in (None, True, 10, object(), []):
        with pytest.raises(AttributeError):
            encode_tagset_values(values)


@pytest.mark.parametrize(
    "key,valid",
    [("_dd.p.dm", True), ("a", True), ("", False), ("a b", False), ("a,b", False), ("a=b", False), ("a\x7f", False)],
)
def test_is_valid_tag_key(key, valid):
    assert is_valid_tag_key(key) is valid


@pytest.mark.parametrize(
    "value,valid",
    [("-4", True), ("a b", True), ("a=b", True), ("", False), ("a,b", False), ("a\nb", False)],
)
def test_is_valid_tag_value(value, valid):
    assert is_valid_tag_value(value) is valid


def test_validate_tag():
    validate_tag(" _dd.p.dm ", " -4 ")
    with pytest.raises(TagsetEncodeError):
        validate_tag("_dd.p.dm", "a,b")
    with pytest.raises(TagsetEncodeError):
        validate_tag("_dd p.dm", "-4")


_keys = st.text(alphabet=[chr(c) for c in range(0x21, 0x7F) if chr(c) not in ",="], min_size=1, max_size=20)
_values = st.text(alphabet=[chr(c) for c in range(0x21, 0x7F) if chr(c) != ","], min_size=1, max_size=40)


@given(st.dictionaries(_keys, _values, max_size=10))
def test_encode_decode(values):
    assert decode_tagset_string(encode_tagset_values(values, max_size=1024), max_size=None) == values
