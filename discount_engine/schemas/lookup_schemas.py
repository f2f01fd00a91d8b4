# discount_engine/schemas/lookup_schemas.py
# Records handed back by the region, product and customer lookups.
from pydantic import BaseModel, Field
from typing import Optional, List


class Region(BaseModel):
    id: str
    name: Optional[str] = None
    currency_code: Optional[str] = None


class Product(BaseModel):
    id: str
    tags: List[str] = Field(default_factory=list)


class Customer(BaseModel):
    id: str
    groups: List[str] = Field(default_factory=list)
