from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MarkSoldPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    buyer_id: Optional[int] = Field(default=None, alias="buyerId")
