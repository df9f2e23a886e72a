import pytest

from ebpfkit.bpf2go.tools import split_arguments, split_cflags_from_args, to_upper_first


@pytest.mark.parametrize(
    "text, expected",
    [
        ("foo", ["foo"]),
        ("foo bar", ["foo", "bar"]),
        ("foo  bar", ["foo", "bar"]),
        ("\\\\", ["\\"]),
        ("foo\\ bar", ["foo bar"]),
        ('foo "" bar', ["foo", "", "bar"]),
        ('"bar baz"', ["bar baz"]),
        ("'bar baz'", ["bar baz"]),
        ("'bar \" \" baz'", ['bar " " baz']),
        ('"bar \\" baz"', ['bar " baz']),
    ],
)
def test_split_arguments(text, expected):
    assert split_arguments(text) == expected


@pytest.mark.parametrize("text", ["\\\\\\", '"', "'"])
def test_split_arguments_errors(text):
    with pytest.raises(ValueError):
        split_arguments(text)


def test_split_arguments_missing_quote_message():
    with pytest.raises(ValueError, match="missing"):
        split_arguments('foo "bar')


def test_split_arguments_unfinished_escape_message():
    with pytest.raises(ValueError, match="unfinished escape"):
        split_arguments("foo\\")


def test_split_cflags_from_args_with_separator():
    assert split_cflags_from_args(["a", "b", "--", "-I.", "-O1"]) == (
        ["a", "b"],
        ["-I.", "-O1"],
    )


def test_split_cflags_from_args_first_separator_only():
    assert split_cflags_from_args(["a", "--", "--", "x"]) == (["a"], ["--", "x"])


def test_split_cflags_from_args_without_separator():
    assert split_cflags_from_args(["a", "b"]) == (["a", "b"], [])


def test_to_upper_first():
    assert to_upper_first("foo") == "Foo"
    assert to_upper_first("Foo") == "Foo"
    assert to_upper_first("") == ""