from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict

from schoollib.models.taxonomy import TaxonomyType


class TaxonomyCreate(BaseModel):
    type: TaxonomyType
    name: str = Field(..., min_length=1, max_length=120)


class TaxonomyResponse(BaseModel):
    id: int
    type: TaxonomyType
    name: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
