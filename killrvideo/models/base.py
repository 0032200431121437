"""Base model for all graph elements (vertices and edges)."""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, PrivateAttr


class GraphElement(BaseModel):
    """Base for all graph elements.

    Declared fields are the typed properties of a label; anything else stored on
    the element is kept as an extra property. Identity is the capability-assigned
    ``graph_id``: two hydrations of the same stored element are equal and hash
    alike, which is what grouping, dedup and set exclusion rely on.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(
        populate_by_name=True,
        extra="allow",
    )

    __label__: ClassVar[str | None] = None
    __kind__: ClassVar[str] = "element"
    _label_registry: ClassVar[dict[tuple[str, str], type["GraphElement"]]] = {}

    _graph_id: int | None = PrivateAttr(default=None)
    _label: str | None = PrivateAttr(default=None)

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        label = cls.__dict__.get("__label__")
        if label is not None:
            GraphElement._label_registry[(cls.__kind__, label)] = cls

    @classmethod
    def for_label(cls, kind: str, label: str | None) -> type["GraphElement"] | None:
        """Return the model class registered for (kind, label), if any."""
        if label is None:
            return None
        return GraphElement._label_registry.get((kind, label))

    def __str__(self):
        return f"{self.label}[{self.graph_id}]{self.properties}"

    def __repr__(self):
        return self.__str__()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GraphElement):
            return NotImplemented
        if self.graph_id is None or other.graph_id is None:
            return self is other
        return self.__kind__ == other.__kind__ and self.graph_id == other.graph_id

    def __hash__(self) -> int:
        if self.graph_id is None:
            return id(self)
        return hash((self.__kind__, self.graph_id))

    @property
    def graph_id(self) -> int | None:
        """Capability-assigned element id (None until stored)."""
        return self._graph_id

    @property
    def label(self) -> str:
        return self._label or self.__label__ or type(self).__name__

    @property
    def properties(self) -> dict[str, Any]:
        """All non-null properties, declared and extra."""
        return self.model_dump(mode="json", exclude_none=True)

    def get(self, key: str, default: Any = None) -> Any:
        """Read a property by key, whether declared on the model or extra."""
        if key in type(self).model_fields:
            value = getattr(self, key)
            return default if value is None else value
        extra = self.__pydantic_extra__ or {}
        return extra.get(key, default)
