from typing import Final, NamedTuple

from isitspam.gate.params import Nested, Scalar

# Top-level keys commonly used by contact forms, checked in this order.
CANDIDATE_FORM_KEYS: Final[tuple[str, ...]] = (
    "commission",
    "contact",
    "inquiry",
    "message",
    "form",
)


class FormFields(NamedTuple):
    """The sender name, email and message found in a request."""

    name: str
    email: str
    message: str

    @property
    def complete(self) -> bool:
        return all(value.strip() for value in self)


def _scalar(params: Nested, key: str) -> str | None:
    match params.get(key):
        case Scalar(value):
            return value
        case _:
            return None


def _first_scalar(params: Nested, *keys: str) -> str | None:
    for key in keys:
        value = _scalar(params, key)
        if value is not None:
            return value
    return None


def _fields_from(params: Nested) -> FormFields:
    name = _scalar(params, "name")
    if name is None:
        first_name = _scalar(params, "first_name") or ""
        last_name = _scalar(params, "last_name") or ""
        name = f"{first_name} {last_name}".strip()

    return FormFields(
        name=name,
        email=_scalar(params, "email") or "",
        message=_first_scalar(params, "message", "body", "content") or "",
    )


def extract_form_fields(
    params: Nested, form_param_name: str | None = None
) -> FormFields:
    """
    Locate the name, email and message of a form submission.

    Parameters
    ----------
    params : Nested
        All request parameters.
    form_param_name : str | None
        Key the form is nested under, when the caller knows it. Ignored if
        that key does not hold a nested mapping.

    Returns
    -------
    FormFields
        The extracted values; missing fields are empty strings.

    Notes
    -----
    - Without an explicit key, the first of `CANDIDATE_FORM_KEYS` holding a
      nested mapping is used; failing that, the top-level parameters.
    - `name` falls back to `first_name` and `last_name` joined by a space,
      which is just the first name when no last name was submitted.
    - `message` falls back to `body`, then `content`.
    """
    if form_param_name is not None:
        match params.get(form_param_name):
            case Nested() as nested:
                return _fields_from(nested)

    for key in CANDIDATE_FORM_KEYS:
        match params.get(key):
            case Nested() as nested:
                return _fields_from(nested)

    return _fields_from(params)
