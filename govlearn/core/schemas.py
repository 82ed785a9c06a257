"""Shared Pydantic base for the HTTP boundary.

Entities and services use snake_case throughout; every request and response
schema derives from CamelModel so that the camelCase wire format is produced
in exactly one place.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serialised with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class OkResponse(CamelModel):
    """Acknowledgement for commands without a richer payload."""

    ok: bool = True
