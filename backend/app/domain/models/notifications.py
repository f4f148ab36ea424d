"""
Notification Messages
Payloads pushed to dashboard clients over the /ws/leads stream
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.utils.timestamps import utcnow


class ChangeType(str, Enum):
    """Database change kinds emitted by the realtime feed"""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class LeadChangeEvent(BaseModel):
    """One row change on a lead table"""
    type: ChangeType
    table: str
    record: Dict[str, Any] = Field(default_factory=dict)
    old_record: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(use_enum_values=True)


class ToastLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class ToastMessage(BaseModel):
    """Transient in-app toast"""
    type: Literal["toast"] = "toast"
    level: ToastLevel = ToastLevel.INFO
    message: str
    timestamp: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(use_enum_values=True)


class DesktopNotification(BaseModel):
    """
    OS-level notification.

    The browser shows it only when the user granted notification
    permission; otherwise the client drops it.
    """
    type: Literal["notification"] = "notification"
    title: str
    body: str
    icon: Optional[str] = "/favicon.ico"
    timestamp: datetime = Field(default_factory=utcnow)


class InvalidateMessage(BaseModel):
    """Tells connected clients that cached query results are stale"""
    type: Literal["invalidate"] = "invalidate"
    key: str
