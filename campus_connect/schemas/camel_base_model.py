from datetime import datetime, date, time
from enum import Enum
from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


class CamelCaseBaseModel(BaseModel):
    """
    Base model shared by every request and response schema.

    - Input accepts either camelCase (what the web client sends) or snake_case.
    - Output: `model_dump(by_alias=True)` yields camelCase keys for the client.
    - Enums, datetimes, dates and times are flattened to JSON-friendly values so
      that dumped models can be handed straight to `ResponseBuilder`.
    - ORM rows can be validated directly (`from_attributes`).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    @field_serializer("*")
    def serialize_any(self, value):
        if isinstance(value, Enum):
            return value.value

        # datetime must come before date
        if isinstance(value, datetime):
            return value.isoformat()

        if isinstance(value, date):
            return value.isoformat()

        if isinstance(value, time):
            return value.strftime("%H:%M")

        if isinstance(value, (list, tuple, set)):
            return [self.serialize_any(item) for item in value]

        if isinstance(value, dict):
            return {key: self.serialize_any(val) for key, val in value.items()}

        if isinstance(value, BaseModel):
            return value.model_dump(by_alias=True)

        return value
