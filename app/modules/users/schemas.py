from pydantic import BaseModel
from typing import Optional


class UserProfile(BaseModel):
    id: str
    display_name: str = "Unknown"
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True
