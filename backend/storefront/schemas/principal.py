"""
storefront/schemas/principal.py
Roles and the authenticated Principal model.
"""
from typing import Literal, Optional
from pydantic import BaseModel, Field

Role = Literal["guest", "user", "admin"]

class Principal(BaseModel):
    uid: str = Field(..., description="Firebase UID (owner key of the cart)")
    role: Role = Field(..., description="guest | user | admin")
    email: Optional[str] = Field(None, description="E-mail (if any)")
    display_name: Optional[str] = Field(None, description="Display name (if any)")
