from pydantic import BaseModel


class AuthUser(BaseModel):
    """Identity proven by a bearer token. Carries no database state."""
    user_id: int
