from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
import json
import re
from typing import Any, Final

from fastapi import Request

# Matches the segments of a bracketed form key: "contact[name]" -> contact, name
KEY_SEGMENT_PATTERN: Final[re.Pattern[str]] = re.compile(r"[^\[\]]+")

FORM_CONTENT_TYPES: Final[tuple[str, ...]] = (
    "application/x-www-form-urlencoded",
    "multipart/form-data",
)


@dataclass(frozen=True)
class Scalar:
    """A single request parameter value."""

    value: str


@dataclass(frozen=True)
class Nested:
    """A mapping of parameter names to further parameter values."""

    fields: Mapping[str, "ParamValue"] = field(default_factory=dict)

    def get(self, key: str) -> "ParamValue | None":
        return self.fields.get(key)


type ParamValue = Scalar | Nested


def params_from_data(data: Mapping[str, Any]) -> Nested:
    """
    Convert a decoded JSON object into a parameter tree.

    Objects become `Nested`; strings, numbers and booleans become `Scalar`.
    Nulls and arrays carry no form field and are dropped.
    """
    fields: dict[str, ParamValue] = {}

    for key, value in data.items():
        if isinstance(value, Mapping):
            fields[str(key)] = params_from_data(value)
        elif isinstance(value, bool):
            fields[str(key)] = Scalar("true" if value else "false")
        elif isinstance(value, (str, int, float)):
            fields[str(key)] = Scalar(str(value))

    return Nested(fields)


def params_from_pairs(pairs: Iterable[tuple[str, str]]) -> Nested:
    """
    Convert query-string or form pairs into a parameter tree.

    Bracketed keys are expanded the way HTML form builders nest them, so
    `contact[name]=Jane` yields `{"contact": {"name": "Jane"}}`. Later pairs
    overwrite earlier ones.
    """
    tree: dict[str, Any] = {}

    for key, value in pairs:
        segments = KEY_SEGMENT_PATTERN.findall(key)
        if not segments:
            continue

        node = tree
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = node[segment] = {}
            node = child

        node[segments[-1]] = value

    return params_from_data(tree)


def merge_params(base: Nested, override: Nested) -> Nested:
    """Merge two parameter trees, descending into mappings present in both."""
    fields: dict[str, ParamValue] = dict(base.fields)

    for key, value in override.fields.items():
        match fields.get(key), value:
            case Nested() as existing, Nested() as incoming:
                fields[key] = merge_params(existing, incoming)
            case _:
                fields[key] = value

    return Nested(fields)


async def read_request_params(request: Request) -> Nested:
    """
    Collect the parameters of a request into one tree.

    Query parameters are combined with the body when it is JSON or a form
    submission; body values win on conflict. A body that cannot be decoded
    contributes nothing.
    """
    params = params_from_pairs(request.query_params.multi_items())
    content_type = request.headers.get("content-type", "").lower()

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return params

        if isinstance(body, Mapping):
            params = merge_params(params, params_from_data(body))

    elif content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        form_pairs = [(k, v) for k, v in form.multi_items() if isinstance(v, str)]
        params = merge_params(params, params_from_pairs(form_pairs))

    return params
