"""Shared Pydantic types and base models used across DTOs."""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Union

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel


def decimal_to_number(value: Decimal) -> Union[int, float]:
    """Render a Decimal as a JSON number; integral amounts stay integers."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# Currency amount carried as Decimal internally and as a JSON number on the wire.
Amount = Annotated[
    Decimal,
    PlainSerializer(decimal_to_number, return_type=Union[int, float], when_used="json"),
]


class CamelModel(BaseModel):
    """Base for DTOs exchanged with the backend/browser, which speak camelCase.

    Accepts both snake_case and camelCase on input; dump with ``by_alias=True``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
