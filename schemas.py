from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime


class CamelModel(BaseModel):
    """snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileOut(CamelModel):
    id: int
    name: str
    size: int
    created_at: datetime
    expires_at: Optional[datetime] = None
    shared: bool


class UploadOut(CamelModel):
    id: int
    name: str
    size: int
    created_at: datetime
    expires_at: Optional[datetime] = None


class ShareCreate(CamelModel):
    file_id: int
    duration_symbol: str = "7days"
    password: Optional[str] = None
    recipient_email: Optional[EmailStr] = None


class ShareOut(CamelModel):
    id: int
    token: str
    expires_at: Optional[datetime] = None


class SharedFileOut(CamelModel):
    id: int
    name: str
    size: int
    created_at: datetime
    key: str


class LogOut(CamelModel):
    id: int
    file_id: Optional[int]
    file_name: str
    action: str
    ip_address: Optional[str]
    user_agent: Optional[str]
    details: Optional[str]
    timestamp: datetime


class StatsOut(CamelModel):
    used_bytes: int
    max_bytes: int
    used_percentage: float
    total_files: int
    shared_files: int
    active_links: int
    expiring_soon: int


class MessageOut(BaseModel):
    message: str
