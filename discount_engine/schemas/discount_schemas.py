# discount_engine/schemas/discount_schemas.py
from pydantic import BaseModel, Field, AliasChoices, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
import isodate

from discount_engine.models.discount_models import (
    DiscountRuleType,
    AllocationType,
    DiscountConditionType,
    DiscountConditionOperator,
)


def _check_duration(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        isodate.parse_duration(value)
    except (isodate.ISO8601Error, ValueError):
        raise ValueError(f"'{value}' is not a valid ISO 8601 duration")
    return value


# -----------------------
# Conditions
# -----------------------
class DiscountConditionInput(BaseModel):
    type: DiscountConditionType
    operator: DiscountConditionOperator = DiscountConditionOperator.IN
    resource_ids: List[str] = Field(default_factory=list)


class DiscountConditionOut(DiscountConditionInput):
    id: int
    rule_id: int

    class Config:
        from_attributes = True


# -----------------------
# Rules
# -----------------------
class DiscountRuleCreate(BaseModel):
    type: DiscountRuleType
    value: int = Field(..., ge=0)
    allocation: Optional[AllocationType] = None
    description: Optional[str] = None
    conditions: List[DiscountConditionInput] = Field(default_factory=list)


class DiscountRuleUpdate(BaseModel):
    type: Optional[DiscountRuleType] = None
    value: Optional[int] = Field(default=None, ge=0)
    allocation: Optional[AllocationType] = None
    description: Optional[str] = None
    conditions: Optional[List[DiscountConditionInput]] = None


class DiscountRuleOut(BaseModel):
    id: int
    type: DiscountRuleType
    value: int
    allocation: Optional[AllocationType] = None
    description: Optional[str] = None
    conditions: List[DiscountConditionOut] = Field(default_factory=list)

    class Config:
        from_attributes = True


# -----------------------
# Discounts
# -----------------------
class DiscountCreate(BaseModel):
    code: str
    rule: DiscountRuleCreate
    is_dynamic: bool = False
    is_disabled: bool = False
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    valid_duration: Optional[str] = None
    usage_limit: Optional[int] = Field(default=None, gt=0)
    regions: List[str] = Field(default_factory=list)
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("valid_duration")
    @classmethod
    def check_valid_duration(cls, value):
        return _check_duration(value)


class DiscountUpdate(BaseModel):
    code: Optional[str] = None
    rule: Optional[DiscountRuleUpdate] = None
    is_disabled: Optional[bool] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    valid_duration: Optional[str] = None
    usage_limit: Optional[int] = Field(default=None, gt=0)
    regions: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("valid_duration")
    @classmethod
    def check_valid_duration(cls, value):
        return _check_duration(value)


class DynamicDiscountCreate(BaseModel):
    code: Optional[str] = None
    ends_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class DiscountOut(BaseModel):
    id: int
    code: str
    is_dynamic: bool
    is_disabled: bool
    parent_discount_id: Optional[int] = None
    starts_at: datetime
    ends_at: Optional[datetime] = None
    valid_duration: Optional[str] = None
    usage_limit: Optional[int] = None
    usage_count: int
    region_ids: List[str] = Field(default_factory=list)
    rule: DiscountRuleOut
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("metadata_", "metadata")
    )
    is_deleted: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DiscountResponse(BaseModel):
    message: str
    data: Optional[DiscountOut] = None


class DiscountListResponse(BaseModel):
    message: str
    total: int
    data: List[DiscountOut]


# -----------------------
# Checkout
# -----------------------
class EligibilityOut(BaseModel):
    ok: bool
    reason: Optional[str] = None
    type: Optional[str] = None
    message: Optional[str] = None


class AdjustmentOut(BaseModel):
    discount_id: int
    line_item_id: str
    amount: int
