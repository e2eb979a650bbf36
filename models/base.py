from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional

class CamelModel(BaseModel):
    """Snake-case fields on the Python side, camelCase keys on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

class DocumentModel(CamelModel):
    """Response model built from a stored document (``_id`` becomes ``id``)."""
    id: str = Field(..., validation_alias=AliasChoices("_id", "id"), serialization_alias="id")

    @classmethod
    def from_doc(cls, doc: dict, **extra):
        return cls.model_validate({**doc, **extra})

class TimeStampedModel(CamelModel):
    created_at: datetime
    updated_at: Optional[datetime] = None
