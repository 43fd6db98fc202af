"""
Subscription Lookup Schemas

Hand-curated mapping from a secondary subscription source's own identifiers
to the close date (and a short name fragment) of the IPO it describes. There is
no shared identifier between the primary listing source and the subscription
source, so close date plus name hint is the join key.
"""
from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SubscriptionLookupEntry(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    slug: str = Field(..., min_length=1)
    external_id: int = Field(..., alias="id", gt=0)
    close_date: date
    name_hint: str = Field(..., min_length=1)

    @field_validator("name_hint")
    @classmethod
    def lowercase_hint(cls, v: str) -> str:
        return v.strip().lower()
