"""
Store reference data model
"""

from pydantic import BaseModel, ConfigDict, Field


class Store(BaseModel):
    model_config = ConfigDict(frozen=True)
    id: str = Field(min_length=1)
    district: str = Field(min_length=1)
    store_number: str = Field(min_length=1)
    store_name: str = Field(min_length=1)
    address: str
