"""Shared pydantic base for request/response payloads.

Fields are snake_case in Python and camelCase on the wire. FastAPI renders
response models by alias, and requests accept either spelling.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
