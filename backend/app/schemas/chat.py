from __future__ import annotations

import enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError, field_validator

from app.core.config import settings

KPP_VALUES = ("AT", "MT", "CVT", "Robot", "AMT")
_MAX_SLOT_CHARS = 64


class UserPreferences(BaseModel):
    """Validated preference slots; JSON keys follow the stored/hidden-block format."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, protected_namespaces=())

    marka: Optional[str] = None
    model: Optional[str] = None
    country: Optional[str] = None
    color: Optional[str] = None
    power: Optional[str] = None
    kpp: Optional[str] = None
    year_from: Optional[StrictInt] = Field(default=None, alias="yearFrom")
    year_to: Optional[StrictInt] = Field(default=None, alias="yearTo")
    body_type: Optional[str] = Field(default=None, alias="bodyType")
    budget: Optional[StrictInt] = None

    @field_validator("marka", "model", "country", "color", "power", "body_type")
    @classmethod
    def _clean_text_slot(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = " ".join(str(value).split())
        if not cleaned:
            raise ValueError("empty value")
        if len(cleaned) > _MAX_SLOT_CHARS:
            raise ValueError("value too long")
        return cleaned

    @field_validator("kpp")
    @classmethod
    def _check_kpp(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        for allowed in KPP_VALUES:
            if value.strip().lower() == allowed.lower():
                return allowed
        raise ValueError(f"unknown transmission: {value}")

    @field_validator("year_from", "year_to")
    @classmethod
    def _check_year(cls, value: Optional[int]) -> Optional[int]:
        if value is None:
            return None
        if not settings.PREFERENCE_YEAR_MIN <= value <= settings.PREFERENCE_YEAR_MAX:
            raise ValueError(f"year out of range: {value}")
        return value

    @field_validator("budget")
    @classmethod
    def _check_budget(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value <= 0:
            raise ValueError("budget must be positive")
        return value

    @classmethod
    def slot_keys(cls) -> List[str]:
        return [field.alias or name for name, field in cls.model_fields.items()]

    @classmethod
    def from_untrusted(cls, data: Any) -> "UserPreferences":
        """Keep every recognized slot that validates on its own; drop the rest."""
        if not isinstance(data, Mapping):
            return cls()
        accepted: Dict[str, Any] = {}
        for key in cls.slot_keys():
            value = data.get(key)
            if value is None or value == "":
                continue
            try:
                cls.model_validate({key: value})
            except ValidationError:
                continue
            accepted[key] = value
        return cls.model_validate(accepted)

    def to_store(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def is_empty(self) -> bool:
        return not self.to_store()


class CarContextItem(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    brand: str
    model: str
    variant: str
    description: Optional[str] = None
    year_from: Optional[int] = None
    year_to: Optional[int] = None
    power_text: Optional[str] = None
    kpp_text: Optional[str] = None
    body_type: Optional[str] = None
    complectations: Tuple[str, ...] = ()

    @property
    def identity(self) -> Tuple[str, str, str]:
        return (self.brand, self.model, self.variant)


class CarVariantSummary(BaseModel):
    id: str
    name: str
    body_type: Optional[str] = None
    year_from: Optional[int] = None
    year_to: Optional[int] = None
    power_text: Optional[str] = None
    kpp_text: Optional[str] = None


class CarModelGroup(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    brand: str
    brand_code: Optional[str] = None
    model_id: str
    model_name: str
    year_from: Optional[int] = None
    year_to: Optional[int] = None
    variants: List[CarVariantSummary] = []


class RagSearchStatus(str, enum.Enum):
    NOT_PERFORMED = "not_performed"
    EMPTY = "empty"
    FOUND = "found"


class ChatUserMessage(BaseModel):
    text: str


class AssistantDelta(BaseModel):
    type: Literal["delta"] = "delta"
    text: str


class AssistantDone(BaseModel):
    type: Literal["done"] = "done"
    final_text: str
    preferences: UserPreferences = UserPreferences()
    search_status: RagSearchStatus = RagSearchStatus.NOT_PERFORMED
    search_results: List[CarContextItem] = []
    rejected: bool = False
    blocked: bool = False


class ChatError(BaseModel):
    type: Literal["error"] = "error"
    code: str
    message: str
