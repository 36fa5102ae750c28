from dataclasses import dataclass, field
from typing import Any, Optional

import pytest

from bencoding import decode, decode_as, decode_into, encode
from errors import InvalidInteger, NonStringKey, UnexpectedEndOfInput, UnexpectedToken
from records import bfield


@dataclass
class Tagged:
    alpha: int = bfield("a", default=0)
    beta: str = field(default="", metadata={"bencode": "b"})
    sea: str = bfield("sea monster", default="")


@dataclass
class Query:
    t: str = ""
    y: str = ""
    q: str = ""
    a: dict[str, str] = field(default_factory=dict)


@dataclass
class Email:
    where: str = ""
    addr: str = ""


@dataclass
class Result:
    name: str = ""
    phone: str = ""
    email: list[Email] = field(default_factory=list)


@dataclass
class Identity:
    age: int = bfield("Age", default=0)
    first_name: str = bfield("FirstName", default="")
    ignored: str = bfield(ignore=True, default="")
    last_name: str = bfield("LastName", default="")


@dataclass
class OmitEmpty:
    age: int = bfield("Age", default=0)
    array: list[str] = bfield("Array", omitempty=True, default_factory=list)
    first_name: str = bfield("FirstName", default="")
    ignored: str = field(default="", metadata={"bencode": "Ignored,omitempty"})
    last_name: str = bfield("LastName", default="")
    renamed: str = field(default="", metadata={"bencode": "otherName,omitempty"})


@dataclass
class Inner:
    name: str = ""


@dataclass
class Outer:
    inner: Optional[Inner] = None
    count: int = 0
    extra: Any = None


@dataclass
class Required:
    size: int
    label: str
    point: tuple[int, int]


# --- Lenient integers ---

@pytest.mark.parametrize("data, expected", [
    (b"i100e", 100),
    (b"i-100e", -100),
    (b"i7.5e", 7),
    (b"i-7.5e", -7),
    (b"i7.574E+2e", 757),
    (b"i-7.574E+2e", -757),
    (b"i7.574E+20e", -9223372036854775808),
    (b"i-7.574E+20e", -9223372036854775808),
    (b"i7.574E-2e", 0),
    (b"i-7.574E-2e", 0),
    (b"i7.574E-20e", 0),
    (b"i-7.574E-20e", 0),
    (b"inane", -9223372036854775808),
])
def test_decode_as_int_is_lenient(data, expected):
    assert decode_as(data, int) == expected


def test_lenient_and_strict_paths_differ():
    with pytest.raises(InvalidInteger):
        decode(b"i7.5e")
    assert decode_as(b"i7.5e", int) == 7


def test_unsigned_numerals():
    data = b"i18446744073709551615e"
    assert decode_as(data, int) == -1
    assert decode_as(data, float) == 18446744073709551615.0
    assert decode_as(data, Any) == -1


def test_float_targets():
    assert decode_as(b"i7.5e", float) == 7.5
    assert decode_as(b"i3e", float) == 3.0
    assert decode_as(b"i7.574E+2e", float) == pytest.approx(757.4)


@pytest.mark.parametrize("data", [b"iabce", b"ie", b"i1E400e", b"i7.5.1e"])
def test_unparseable_numerals_fail(data):
    with pytest.raises(InvalidInteger):
        decode_as(data, int)


# --- Scalars and containers ---

@pytest.mark.parametrize("data, hint, expected", [
    (b"1:a", str, "a"),
    (b"1:a", bytes, b"a"),
    (b'2:a"', str, 'a"'),
    (b"11:0123456789a", str, "0123456789a"),
    (b"le", list[int], []),
    (b"li1ei2ee", list[int], [1, 2]),
    (b"l3:abc3:defe", list[str], ["abc", "def"]),
    (b"li42e3:abce", list[Any], [42, b"abc"]),
    (b"li42e3:abce", list, [42, b"abc"]),
    (b"de", dict[str, Any], {}),
    (b"d3:cati1e3:dogi2ee", dict[str, int], {"cat": 1, "dog": 2}),
    (b"d3:cati1e3:dogi2ee", dict[bytes, int], {b"cat": 1, b"dog": 2}),
    (b"d3:cati1e3:dogi2ee", dict, {"cat": 1, "dog": 2}),
    (b"li1ei2ei3ee", tuple[int, ...], (1, 2, 3)),
    (b"li1ei2ei3ee", tuple[int, int], (1, 2)),
    (b"li1e1:xe", tuple[int, str], (1, "x")),
    (b"li1ee", tuple[int, int], (1, 0)),
    (b"li1ei2ee", Optional[list[int]], [1, 2]),
])
def test_decode_as_shapes(data, hint, expected):
    assert decode_as(data, hint) == expected


def test_text_targets_keep_undecodable_bytes():
    text = decode_as(b"2:\xff\xfe", str)
    assert encode(text) == b"2:\xff\xfe"


@pytest.mark.parametrize("data, hint, expected", [
    (b"i5e", str, ""),
    (b"3:abc", int, 0),
    (b"li1ee", dict[str, int], {}),
    (b"d1:ai1ee", list[int], []),
    (b"li1ee", Optional[list[int]], [1]),
    (b"i5e", Optional[list[int]], None),
    (b"i1e", bool, None),
])
def test_mismatched_shapes_leave_zero_values(data, hint, expected):
    assert decode_as(data, hint) == expected


def test_map_entries_are_created_for_every_key():
    # An entry whose value does not fit keeps the zero value
    assert decode_as(b"d1:a3:xyz1:bi2ee", dict[str, int]) == {"a": 0, "b": 2}


def test_maps_with_unsupported_key_types_stay_empty():
    assert decode_as(b"d1:ai1ee", dict[int, int]) == {}


def test_list_elements_that_do_not_fit_are_zero():
    assert decode_as(b"li1e1:xi3ee", list[int]) == [1, 0, 3]


def test_extra_fixed_array_elements_are_dropped():
    assert decode_as(b"li1eli2eei3ee", tuple[int, int]) == (1, 0)


# --- Records ---

def test_record_with_tagged_fields():
    record = Tagged()
    decode_into(b"d1:ai10e1:b3:foo11:sea monster3:bare", record)
    assert record == Tagged(10, "foo", "bar")


def test_nested_record_with_map_field():
    data = b"d1:ad2:id20:abcdefghij0123456789e1:q4:ping1:t2:aa1:y1:qe"
    assert decode_as(data, Query) == Query("aa", "q", "ping", {"id": "abcdefghij0123456789"})


def test_record_lookup_is_case_insensitive_and_skips_unknown_keys():
    data = (
        b"d5:emailld5:where4:home4:addr15:gre@example.come"
        b"d5:WHERE4:work4:ADDR12:gre@work.comee"
        b"4:name14:Grace R. Emlin7:address15:123 Main Streete"
    )
    result = Result("name", "phone", [])
    decode_into(data, result)
    assert result == Result(
        "Grace R. Emlin",
        "phone",  # not in the data, left alone
        [Email("home", "gre@example.com"), Email("work", "gre@work.com")],
    )


def test_explicit_key_wins_over_field_name():
    @dataclass
    class Renamed:
        name: str = bfield("full", default="")
        label: str = bfield("Name", default="")

    record = Renamed()
    decode_into(b"d4:full3:one4:name3:twoe", record)
    assert record == Renamed(name="one", label="two")


def test_excluded_field_round_trip():
    identity = Identity(42, "Jack", "Why are you ignoring me?", "Daniel")
    data = encode(identity)
    assert data == b"d3:Agei42e9:FirstName4:Jack8:LastName6:Daniele"

    decoded = Identity()
    decode_into(data, decoded)
    assert decoded.age == 42
    assert decoded.first_name == "Jack"
    assert decoded.last_name == "Daniel"
    assert decoded.ignored == ""


def test_excluded_field_is_not_filled_from_data():
    record = Identity()
    decode_into(b"d7:ignored3:yese", record)
    assert record.ignored == ""


def test_omitempty_fields_left_out_when_empty():
    record = OmitEmpty(42, [], "Jack", "", "Daniel", "")
    assert encode(record) == b"d3:Agei42e9:FirstName4:Jack8:LastName6:Daniele"


def test_omitempty_fields_kept_when_set():
    record = OmitEmpty(42, ["first", "second"], "Jack", "Not ignored", "Daniel", "Whisky")
    assert encode(record) == (
        b"d3:Agei42e5:Arrayl5:first6:seconde9:FirstName4:Jack"
        b"7:Ignored11:Not ignored8:LastName6:Daniel9:otherName6:Whiskye"
    )


def test_omitempty_round_trip_uses_renamed_key():
    original = OmitEmpty(1, ["x"], "A", "", "B", "C")
    decoded = decode_as(encode(original), OmitEmpty)
    assert decoded == original


def test_optional_nested_record_is_created_only_for_dicts():
    assert decode_as(b"d5:inneri3ee", Outer).inner is None
    assert decode_as(b"d5:innerd4:name3:bobee", Outer).inner == Inner("bob")


def test_any_field_receives_a_generic_tree():
    outer = decode_as(b"d5:countli1ee5:extrad1:ali1ei2.5eeee", Outer)
    assert outer.count == 0
    assert outer.extra == {b"a": [1, 2]}


@pytest.mark.parametrize("data, expected", [
    (b"li2.5ei18446744073709551615ee", [2, -1]),
    (b"d1:ai-7.574E+2e1:bi7.574E+20ee", {b"a": -757, b"b": -9223372036854775808}),
    (b"i18446744073709551615e", -1),
])
def test_generic_targets_hold_encodable_integers(data, expected):
    value = decode_as(data, Any)
    assert value == expected
    assert decode(encode(value)) == value


def test_records_with_required_fields_get_zero_values():
    record = decode_as(b"d4:sizei3e5:pointli4ei5eee", Required)
    assert record == Required(3, "", (4, 5))


def test_decode_as_record_from_non_dict_is_zero_record():
    assert decode_as(b"le", Inner) == Inner()


# --- Roots updated in place ---

def test_decode_into_list_replaces_contents_in_place():
    target = [9, 9, 9]
    decode_into(b"li1ei2ee", target, item_type=int)
    assert target == [1, 2]


def test_decode_into_list_of_records():
    target = []
    same = target
    decode_into(b"ld4:name1:aed4:name1:bee", target, item_type=Inner)
    assert same is target
    assert target == [Inner("a"), Inner("b")]


def test_decode_into_dict_merges():
    target = {"keep": 1}
    decode_into(b"d3:cati1ee", target, item_type=int)
    assert target == {"keep": 1, "cat": 1}


def test_decode_into_dict_with_bytes_keys():
    target = {}
    decode_into(b"d3:cat1:xe", target, item_type=bytes, key_type=bytes)
    assert target == {b"cat": b"x"}


@pytest.mark.parametrize("target", [5, "text", (1, 2), None])
def test_decode_into_needs_a_mutable_target(target):
    with pytest.raises(TypeError):
        decode_into(b"i1e", target)


# --- Errors ---

@pytest.mark.parametrize("data, error", [
    (b"li1e", UnexpectedEndOfInput),
    (b"di1ei2ee", NonStringKey),
    (b"l?e", UnexpectedToken),
])
def test_decode_as_errors(data, error):
    with pytest.raises(error):
        decode_as(data, list[int])
