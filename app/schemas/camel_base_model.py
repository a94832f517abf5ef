import uuid
from datetime import datetime, date
from enum import Enum
from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


class CamelCaseBaseModel(BaseModel):
    """
    Base model with camelCase field aliases.

    - Input: camelCase keys (studentId, firstName, ...) or snake_case names are accepted.
    - Output: `model_dump(by_alias=True)` produces camelCase for the dashboard client.
    - UUIDs, Enums, dates and sets are flattened to JSON-friendly values on dump.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_serializer("*", mode="wrap")
    def serialize_any(self, value, handler):
        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, (set, frozenset)):
            return sorted(value, key=str)
        return handler(value)
