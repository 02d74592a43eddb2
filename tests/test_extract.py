import pytest

from isitspam.gate.extract import FormFields, extract_form_fields
from isitspam.gate.params import (
    Nested,
    Scalar,
    merge_params,
    params_from_data,
    params_from_pairs,
)


def test_extracts_from_nested_candidate_key():
    """A nested `contact` form is found without configuration."""
    params = params_from_data(
        {"contact": {"name": "J", "email": "j@x.com", "message": "hi"}}
    )

    assert extract_form_fields(params) == ("J", "j@x.com", "hi")


def test_falls_back_to_flat_params_with_joined_name():
    """Flat parameters are used when no candidate key holds a mapping."""
    params = params_from_data(
        {"first_name": "A", "last_name": "B", "email": "a@b.com", "message": "m"}
    )

    assert extract_form_fields(params) == ("A B", "a@b.com", "m")


def test_first_name_alone_is_used_as_name():
    """Without a last name, the first name stands alone."""
    params = params_from_data(
        {"inquiry": {"first_name": "Ada", "email": "ada@x.com", "body": "hello"}}
    )

    assert extract_form_fields(params) == ("Ada", "ada@x.com", "hello")


def test_candidate_keys_are_checked_in_order():
    """`commission` wins over `contact` when both hold mappings."""
    params = params_from_data(
        {
            "contact": {"name": "Contact", "email": "c@x.com", "message": "c"},
            "commission": {"name": "Commission", "email": "m@x.com", "message": "m"},
        }
    )

    assert extract_form_fields(params).name == "Commission"


def test_scalar_candidate_key_is_skipped():
    """A scalar `message` parameter is not mistaken for a nested form."""
    params = params_from_data(
        {
            "message": "plain",
            "form": {"name": "F", "email": "f@x.com", "content": "from form"},
        }
    )

    assert extract_form_fields(params) == ("F", "f@x.com", "from form")


def test_explicit_form_param_name_takes_precedence():
    """A caller-supplied key is used before the candidate list."""
    params = params_from_data(
        {
            "contact": {"name": "Contact", "email": "c@x.com", "message": "c"},
            "support_request": {"name": "S", "email": "s@x.com", "message": "s"},
        }
    )

    fields = extract_form_fields(params, form_param_name="support_request")

    assert fields == ("S", "s@x.com", "s")


def test_explicit_form_param_name_without_mapping_falls_through():
    """An explicit key that is missing or scalar is ignored."""
    params = params_from_data(
        {
            "support_request": "oops",
            "contact": {"name": "C", "email": "c@x.com", "message": "c"},
        }
    )

    assert extract_form_fields(params, form_param_name="support_request").name == "C"


def test_message_falls_back_to_body_then_content():
    """`message` is preferred, then `body`, then `content`."""
    body = params_from_data({"email": "e@x.com", "body": "B", "content": "C"})
    content = params_from_data({"email": "e@x.com", "content": "C"})

    assert extract_form_fields(body).message == "B"
    assert extract_form_fields(content).message == "C"


def test_missing_fields_are_empty_strings():
    """Nothing found yields empty strings rather than None."""
    fields = extract_form_fields(Nested())

    assert fields == ("", "", "")
    assert not fields.complete


@pytest.mark.parametrize(
    "fields, complete",
    [
        (FormFields("J", "j@x.com", "hi"), True),
        (FormFields("J", "", "hi"), False),
        (FormFields("  ", "j@x.com", "hi"), False),
        (FormFields("J", "j@x.com", "\n"), False),
    ],
)
def test_form_fields_complete(fields, complete):
    """All three fields must be non-blank."""
    assert fields.complete is complete


def test_params_from_data_tags_values():
    """Objects become Nested, primitives Scalar, nulls and lists are dropped."""
    params = params_from_data(
        {"a": {"b": "c"}, "n": 3, "t": True, "none": None, "list": [1, 2]}
    )

    assert params == Nested(
        {"a": Nested({"b": Scalar("c")}), "n": Scalar("3"), "t": Scalar("true")}
    )


def test_params_from_pairs_expands_brackets():
    """Bracketed form keys produce nested mappings."""
    params = params_from_pairs(
        [
            ("contact[name]", "Jane"),
            ("contact[email]", "jane@x.com"),
            ("contact[message]", "Hi"),
            ("utm_source", "ad"),
        ]
    )

    assert params.get("utm_source") == Scalar("ad")
    assert extract_form_fields(params) == ("Jane", "jane@x.com", "Hi")


def test_merge_params_descends_into_mappings():
    """Nested mappings are merged key by key, the override winning."""
    base = params_from_data({"contact": {"name": "Q", "email": "q@x.com"}, "x": "1"})
    override = params_from_data({"contact": {"name": "B", "message": "m"}})

    merged = merge_params(base, override)

    assert extract_form_fields(merged) == ("B", "q@x.com", "m")
    assert merged.get("x") == Scalar("1")
