from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class FormIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    is_public: bool = False
    allow_anonymous: bool = False


class FormOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    is_public: bool
    allow_anonymous: bool
    created_at: datetime
    updated_at: datetime


class FormElementIn(BaseModel):
    element_type: str = Field(min_length=1, max_length=50)
    question: str = Field(min_length=1)
    required: bool = False
    options: Optional[Any] = None
    order_index: int = 0


class FormElementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    form_id: int
    element_type: str
    question: str
    required: bool
    options: Optional[Any] = None
    order_index: int
    created_at: datetime
    updated_at: datetime


class FormResponseIn(BaseModel):
    # Answers keyed by element id or question
    response_data: Dict[str, Any]


class FormResponseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    form_id: int
    respondent_id: Optional[int] = None
    response_data: Any
    created_at: datetime


class FormShareIn(BaseModel):
    share_type: str = Field(min_length=1, max_length=50)
    expires_at: Optional[datetime] = None


class FormShareOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    form_id: int
    share_type: str
    share_token: str
    expires_at: Optional[datetime] = None
    created_at: datetime
