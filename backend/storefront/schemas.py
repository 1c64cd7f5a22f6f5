"""
Shared pydantic base for API payloads.

The storefront and admin console speak camelCase JSON; Python code uses
snake_case attribute names. Requests accept either spelling.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
