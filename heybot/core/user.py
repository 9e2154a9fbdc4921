"""Chat participant model."""

from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


# Extra attributes supplied by adapters (email, display names, ...) are kept.
class User(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | int
    name: str = ""
    room: str | None = None

    @model_validator(mode="before")
    @classmethod
    def default_name_to_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name") and "id" in data:
            data = {**data, "name": str(data["id"])}
        return data
