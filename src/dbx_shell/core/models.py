from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field

from ..errors import ConfigError

EMPTY_NAME = "[empty name]"


class ConnectionDescriptor(BaseModel):
    """
    A named reference to one external data source.

    The `id` is derived from `name` and `kind` and cannot be assigned. The model
    is frozen, so the id computed at registration stays the registry key for the
    lifetime of the descriptor.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = EMPTY_NAME
    kind: str = Field(..., alias="type", min_length=1)
    url: str = Field(..., min_length=1)

    @computed_field
    @property
    def id(self) -> str:
        return self.name + self.kind

    @classmethod
    def from_mapping(
        cls, data: Union["ConnectionDescriptor", Mapping[str, Any]]
    ) -> "ConnectionDescriptor":
        """
        Builds a descriptor from user-supplied data, raising ConfigError instead
        of a pydantic ValidationError when a field is missing or invalid.
        Existing descriptors are validated again, since `model_construct` skips
        validation.
        """
        if isinstance(data, ConnectionDescriptor):
            data = {"name": data.name, "type": data.kind, "url": data.url}

        url = data.get("url")
        if not url:
            raise ConfigError("url needs to be set!")
        kind = data.get("kind") or data.get("type")
        if not kind:
            raise ConfigError(f"no type set for connection with url '{url}'")

        name = data.get("name")
        name = EMPTY_NAME if name is None else str(name)
        try:
            return cls(name=name, kind=kind, url=url)
        except ValidationError as e:
            raise ConfigError(f"Invalid connection '{name}': {e}") from e


class LayoutNode(BaseModel):
    """One node of the schema/history tree built by the execution backend."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    schema_name: str = Field("", alias="schema")
    database: str = ""
    kind: Literal["record", "table", "history", "scratch"] = Field(..., alias="type")
    children: List["LayoutNode"] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


LayoutNode.model_rebuild()


class AddOutcome(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"


class ActivateOutcome(str, Enum):
    ACTIVATED = "activated"
    UNKNOWN = "unknown"
