from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserOut(BaseModel):
    """Public view of a user. The password hash never leaves the server."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: Optional[str] = None
    subscription_plan: str = "free"  # free or unlimited
    created_at: datetime
    updated_at: datetime
