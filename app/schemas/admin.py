from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List, Optional


class FieldDefinitionIn(BaseModel):
    # Rules are enforced by FieldRegistry.validate_field.
    model_config = ConfigDict(extra="allow")

    id: Optional[Any] = None
    label: Optional[Any] = None
    type: Optional[Any] = None
    required: Optional[Any] = None
    enabled: Optional[Any] = None
    placeholder: Optional[Any] = None
    position: Optional[Any] = None
    options: Optional[Any] = None


class FieldsReplaceIn(BaseModel):
    fields: List[Any] = Field(default_factory=list)


class GenerateIdIn(BaseModel):
    base: Optional[str] = None


class LegacyLabelIn(BaseModel):
    label: str = ""


class OrderMetaUpdateIn(BaseModel):
    fields: List[Any] = Field(default_factory=list)
