from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class CustomerModel(BaseModel):
    id: int
    name: str


class TransactionModel(BaseModel):
    id: int
    customer_id: int
    amount: float
    date: str


class DatabaseModel(BaseModel):
    customers: List[CustomerModel] = Field(default_factory=list)
    transactions: List[TransactionModel] = Field(default_factory=list)


class TransactionFiltersModel(BaseModel):
    selected_customer_id: Optional[int] = None
    name_query: str = ""
    amount_query: str = ""
