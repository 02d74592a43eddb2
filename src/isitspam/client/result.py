from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SpamCheckResult(BaseModel):
    """
    Immutable outcome of a single spam check.

    Attributes
    ----------
    spam : bool
        Whether the submitted content was classified as spam.
    confidence : float
        Classifier confidence in the range [0.0, 1.0]. Numeric strings such
        as `"0.75"` are accepted and coerced.
    reasons : tuple[str, ...]
        Reasons reported by the API for the classification. Always a tuple,
        empty when the API omits the field or sends null.

    Examples
    --------
    >>> result = SpamCheckResult.from_data({"spam": True, "confidence": 0.9, "reasons": ["links"]})
    >>> result.summary()
    'Spam detected (90.0% confidence): links'
    """

    model_config = ConfigDict(frozen=True)

    spam: bool
    confidence: float = Field(ge=0.0, le=1.0)
    reasons: tuple[str, ...] = ()

    @field_validator("reasons", mode="before")
    @classmethod
    def _reasons_default_to_empty(cls, value: Any) -> Any:
        return () if value is None else value

    @classmethod
    def from_data(cls, data: Mapping[str, Any]) -> "SpamCheckResult":
        """
        Build a result from a decoded API response body.

        Raises
        ------
        pydantic.ValidationError
            If `spam` or `confidence` are missing or cannot be coerced.
        """
        return cls.model_validate(data)

    @property
    def legitimate(self) -> bool:
        return not self.spam

    def summary(self) -> str:
        """Return a human-readable one-line description of the result."""
        # Round half away from zero so 0.0625 reads as 6.3%, not 6.2%.
        percentage = Decimal(repr(self.confidence * 100)).quantize(
            Decimal("0.1"), rounding=ROUND_HALF_UP
        )

        if self.spam:
            return (
                f"Spam detected ({percentage}% confidence): {', '.join(self.reasons)}"
            )

        return f"Content appears legitimate ({percentage}% confidence)"

    def to_dict(self) -> dict[str, Any]:
        return {
            "spam": self.spam,
            "confidence": self.confidence,
            "reasons": list(self.reasons),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
