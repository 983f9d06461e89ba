"""
Data models for the chat relay
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional
import re
import threading
import time
from .constants import DEFAULT_MAX_USERS, MAX_HISTORY_MESSAGES, MESSAGE_SANITIZATION_PATTERN

_id_lock = threading.Lock()
_last_message_id = 0

def next_message_id() -> str:
    """Millisecond-clock message id, strictly increasing within the process"""
    global _last_message_id
    with _id_lock:
        candidate = int(time.time() * 1000)
        if candidate <= _last_message_id:
            candidate = _last_message_id + 1
        _last_message_id = candidate
        return str(candidate)

def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision"""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"

def sanitize_text(input_str: str) -> str:
    """Remove control characters except newlines and tabs"""
    if not input_str:
        return ""
    return re.sub(MESSAGE_SANITIZATION_PATTERN, '', input_str)

@dataclass
class Session:
    """One accepted connection"""
    session_id: str
    identity: str
    peer_address: str = ""
    room_code: Optional[str] = None
    username: Optional[str] = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    closed: bool = False
    
    @property
    def in_room(self) -> bool:
        return self.room_code is not None
    
    def enter_room(self, room_code: str, username: str):
        self.room_code = room_code
        self.username = username
    
    def exit_room(self):
        self.room_code = None
        self.username = None

@dataclass(frozen=True)
class Member:
    """Room member summary as shown to clients"""
    session_id: str
    username: str
    
    def to_dict(self) -> Dict[str, Any]:
        return {"username": self.username, "id": self.session_id}

@dataclass(frozen=True)
class ChatMessage:
    """Immutable chat message stored in a room's history"""
    text: str
    username: str
    id: str = field(default_factory=next_message_id)
    timestamp: str = field(default_factory=utc_timestamp)
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "id": self.id,
            "text": self.text,
            "username": self.username,
            "timestamp": self.timestamp,
        }

@dataclass
class Room:
    """Capacity-bounded broadcast group with bounded history"""
    code: str
    name: str
    max_users: int = DEFAULT_MAX_USERS
    members: Dict[str, Member] = field(default_factory=dict)
    messages: Deque[ChatMessage] = field(default_factory=lambda: deque(maxlen=MAX_HISTORY_MESSAGES))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    
    @property
    def member_count(self) -> int:
        return len(self.members)
    
    @property
    def is_full(self) -> bool:
        return self.member_count >= self.max_users
    
    @property
    def is_open(self) -> bool:
        return not self.is_full
    
    def should_delete(self) -> bool:
        """Rooms never persist empty"""
        return self.member_count == 0
    
    def member_ids(self) -> List[str]:
        return list(self.members)
    
    def member_list(self) -> List[Dict[str, Any]]:
        return [member.to_dict() for member in self.members.values()]
    
    def history(self) -> List[Dict[str, Any]]:
        return [message.to_dict() for message in self.messages]
    
    def append_message(self, message: ChatMessage):
        """Append to history; the deque evicts the oldest entry at capacity"""
        self.messages.append(message)
    
    def to_listing(self) -> Dict[str, Any]:
        """Entry for an available_rooms listing"""
        return {
            "code": self.code,
            "name": self.name,
            "userCount": self.member_count,
            "maxUsers": self.max_users,
        }
