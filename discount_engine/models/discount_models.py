# discount_engine/models/discount_models.py
import enum
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, JSON, ForeignKey, Enum, Index,
    CheckConstraint, UniqueConstraint, text,
)
from sqlalchemy.orm import relationship
from discount_engine.utils.datetime_utils import utc_now
from discount_engine.core.db import Base


class DiscountRuleType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class AllocationType(str, enum.Enum):
    ITEM = "item"
    TOTAL = "total"


class DiscountConditionType(str, enum.Enum):
    PRODUCTS = "products"
    PRODUCT_TAGS = "product_tags"
    CUSTOMER_GROUPS = "customer_groups"


class DiscountConditionOperator(str, enum.Enum):
    IN = "in"
    NOT_IN = "not_in"


PRODUCT_CONDITION_TYPES = (DiscountConditionType.PRODUCTS, DiscountConditionType.PRODUCT_TAGS)
CUSTOMER_CONDITION_TYPES = (DiscountConditionType.CUSTOMER_GROUPS,)


class DiscountRule(Base):
    __tablename__ = "discount_rules"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(Enum(DiscountRuleType, name="discount_rule_type"), nullable=False)
    value = Column(Integer, nullable=False)
    allocation = Column(Enum(AllocationType, name="discount_allocation"), nullable=True)
    description = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    conditions = relationship(
        "DiscountCondition",
        back_populates="rule",
        cascade="all, delete-orphan",
        order_by="DiscountCondition.id",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("value >= 0", name="ck_discount_rule_value_non_negative"),
    )

    def __repr__(self):
        return f"<DiscountRule id={self.id} type={self.type} value={self.value}>"


class DiscountCondition(Base):
    __tablename__ = "discount_conditions"

    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(Integer, ForeignKey("discount_rules.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Enum(DiscountConditionType, name="discount_condition_type"), nullable=False)
    operator = Column(Enum(DiscountConditionOperator, name="discount_condition_operator"), nullable=False)
    resource_ids = Column(JSON, nullable=False, default=list)

    rule = relationship("DiscountRule", back_populates="conditions")

    __table_args__ = (
        UniqueConstraint("rule_id", "type", name="uq_discount_condition_rule_type"),
    )


class DiscountRegion(Base):
    __tablename__ = "discount_regions"

    discount_id = Column(Integer, ForeignKey("discounts.id", ondelete="CASCADE"), primary_key=True)
    region_id = Column(String(64), primary_key=True)


class Discount(Base):
    __tablename__ = "discounts"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), nullable=False, index=True)
    is_dynamic = Column(Boolean, nullable=False, default=False)
    is_disabled = Column(Boolean, nullable=False, default=False)

    rule_id = Column(Integer, ForeignKey("discount_rules.id"), nullable=False, index=True)
    # Flat self-reference: a child points at its template, nothing points back.
    parent_discount_id = Column(Integer, ForeignKey("discounts.id"), nullable=True, index=True)

    starts_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    ends_at = Column(DateTime(timezone=True), nullable=True)
    valid_duration = Column(String(64), nullable=True)

    usage_limit = Column(Integer, nullable=True)
    usage_count = Column(Integer, nullable=False, default=0)

    metadata_ = Column("metadata", JSON, nullable=True)

    # Soft Delete
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    rule = relationship("DiscountRule", lazy="selectin")
    regions = relationship(
        "DiscountRegion",
        cascade="all, delete-orphan",
        order_by="DiscountRegion.region_id",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("usage_count >= 0", name="ck_discount_usage_count_non_negative"),
        Index(
            "uq_discount_code_active",
            "code",
            unique=True,
            sqlite_where=text("is_deleted = 0"),
            postgresql_where=text("is_deleted = false"),
        ),
    )

    @property
    def region_ids(self) -> list[str]:
        return [r.region_id for r in self.regions]

    def __repr__(self):
        return f"<Discount id={self.id} code={self.code} dynamic={self.is_dynamic}>"
