"""
cush/schemas/base.py

Purpose: Shared base for request bodies

- JSON bodies use camelCase keys; Python code uses snake_case attributes
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts camelCase (and snake_case) keys, dumps camelCase with by_alias=True."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
