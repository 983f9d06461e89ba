"""
Room registry: room lifecycle, membership and bounded message history
"""

import asyncio
import secrets
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from .models import ChatMessage, Member, Room
from .constants import (
    DEFAULT_MAX_USERS,
    NOT_IN_ROOM,
    ROOM_CODE_ATTEMPTS,
    ROOM_CODE_BYTES,
    ROOM_FULL,
    ROOM_NOT_FOUND,
)
from .logger import get_logger, log_message_event, log_room_event

logger = get_logger()

def generate_room_code(num_bytes: int = ROOM_CODE_BYTES) -> str:
    """Short, human-typeable code: upper-cased hex of random bytes"""
    return secrets.token_hex(num_bytes).upper()

@dataclass
class LeaveOutcome:
    """State change produced by a member leaving a room"""
    room_code: str
    member: Member
    user_count: int
    # Members still in the room after the departure
    recipients: List[str]
    room_deleted: bool
    
    def to_event(self) -> Dict[str, Any]:
        return {
            "userId": self.member.session_id,
            "username": self.member.username,
            "userCount": self.user_count,
        }

@dataclass
class JoinOutcome:
    """State change produced by a successful join"""
    room_code: str
    member: Member
    user_count: int
    # Every member including the joiner
    recipients: List[str]
    messages: List[Dict[str, Any]]
    users: List[Dict[str, Any]]
    left: Optional[LeaveOutcome] = None
    rejoined: bool = False
    
    def joined_event(self) -> Dict[str, Any]:
        return {"user": self.member.to_dict(), "userCount": self.user_count}
    
    def history_event(self) -> Dict[str, Any]:
        return {"messages": self.messages, "users": self.users}

@dataclass
class SendOutcome:
    """Message appended to a room's history"""
    room_code: str
    message: ChatMessage
    recipients: List[str] = field(default_factory=list)

class RoomManager:
    """Room registry; every check-and-mutate runs under one lock"""
    
    def __init__(self, code_factory: Callable[[int], str] = generate_room_code):
        # code -> Room, in creation order
        self._rooms: Dict[str, Room] = {}
        self._code_factory = code_factory
        self._lock = asyncio.Lock()
    
    def _new_code(self) -> str:
        """Generate a code not used by any live room"""
        num_bytes = ROOM_CODE_BYTES
        while True:
            for _ in range(ROOM_CODE_ATTEMPTS):
                code = self._code_factory(num_bytes)
                if code not in self._rooms:
                    return code
                logger.warning(f"Room code collision: {code}, regenerating")
            # Keyspace looks crowded, widen it
            num_bytes += 1
    
    async def create(self, name: str, max_users: Optional[int] = None) -> str:
        """
        Create an empty room
        
        Args:
            name: Display name, not deduplicated
            max_users: Capacity; falsy means the default of 10
            
        Returns:
            Generated room code
        """
        async with self._lock:
            code = self._new_code()
            self._rooms[code] = Room(code=code, name=name, max_users=max_users or DEFAULT_MAX_USERS)
            log_room_event(code, "create", f"name={name!r} | max_users={self._rooms[code].max_users}")
            return code
    
    async def list_open(self) -> List[Dict[str, Any]]:
        """
        List rooms that still have space, in creation order
        
        Returns:
            List of {code, name, userCount, maxUsers}
        """
        async with self._lock:
            return [room.to_listing() for room in self._rooms.values() if room.is_open]
    
    async def join(self, code: str, session_id: str, username: str,
                   previous_code: Optional[str] = None) -> Tuple[bool, str, Optional[JoinOutcome]]:
        """
        Add a session to a room if it exists and has space
        
        Args:
            code: Room code to join
            session_id: Joining session
            username: Display name for this membership
            previous_code: Room the session currently occupies, left on success
            
        Returns:
            Tuple of (success, error_key, outcome)
        """
        async with self._lock:
            room = self._rooms.get(code)
            if room is None:
                log_room_event(code, "join_error", f"session={session_id} | not found")
                return False, ROOM_NOT_FOUND, None
            
            rejoined = previous_code == code and session_id in room.members
            if not rejoined and room.is_full:
                log_room_event(code, "join_error", f"session={session_id} | full ({room.member_count}/{room.max_users})")
                return False, ROOM_FULL, None
            
            left = None
            if previous_code is not None and not rejoined:
                left = self._remove_member(previous_code, session_id)
            
            member = Member(session_id=session_id, username=username)
            room.members[session_id] = member
            log_room_event(code, "join", f"session={session_id} | user={username} | count={room.member_count}")
            
            outcome = JoinOutcome(
                room_code=code,
                member=member,
                user_count=room.member_count,
                recipients=room.member_ids(),
                messages=room.history(),
                users=room.member_list(),
                left=left,
                rejoined=rejoined
            )
            return True, "", outcome
    
    async def send(self, code: Optional[str], session_id: str, text: str) -> Tuple[bool, str, Optional[SendOutcome]]:
        """
        Append a message to the sender's room
        
        Args:
            code: Sender's current room, if any
            session_id: Sending session
            text: Message body
            
        Returns:
            Tuple of (success, error_key, outcome)
        """
        async with self._lock:
            room = self._rooms.get(code) if code else None
            if room is None or session_id not in room.members:
                return False, NOT_IN_ROOM, None
            
            message = ChatMessage(text=text, username=room.members[session_id].username)
            room.append_message(message)
            log_message_event(message.id, message.username, code, "append", f"length={len(text)} | history={len(room.messages)}")
            return True, "", SendOutcome(room_code=code, message=message, recipients=room.member_ids())
    
    async def leave(self, session_id: str, code: Optional[str]) -> Optional[LeaveOutcome]:
        """
        Remove a member, deleting the room if it becomes empty
        
        Args:
            session_id: Leaving session
            code: Room the session believes it is in
            
        Returns:
            LeaveOutcome, or None if the session was not a member
        """
        async with self._lock:
            return self._remove_member(code, session_id)
    
    async def disconnect_cleanup(self, session_id: str, code: Optional[str]) -> Optional[LeaveOutcome]:
        """Same effect as leave, for connections dropped without an explicit leave"""
        async with self._lock:
            outcome = self._remove_member(code, session_id)
            if outcome is not None:
                log_room_event(outcome.room_code, "disconnect_cleanup", f"session={session_id}")
            return outcome
    
    def _remove_member(self, code: Optional[str], session_id: str) -> Optional[LeaveOutcome]:
        """Caller holds the lock"""
        room = self._rooms.get(code) if code else None
        if room is None or session_id not in room.members:
            return None
        
        member = room.members.pop(session_id)
        deleted = room.should_delete()
        if deleted:
            del self._rooms[code]
            log_room_event(code, "delete", "empty")
        
        log_room_event(code, "leave", f"session={session_id} | user={member.username} | remaining={room.member_count}")
        return LeaveOutcome(
            room_code=code,
            member=member,
            user_count=room.member_count,
            recipients=room.member_ids(),
            room_deleted=deleted
        )
    
    async def get_room(self, code: str) -> Optional[Room]:
        async with self._lock:
            return self._rooms.get(code)
    
    async def get_room_stats(self) -> Dict[str, int]:
        """
        Get overall room statistics
        
        Returns:
            Dictionary with room stats
        """
        async with self._lock:
            return {
                "total_rooms": len(self._rooms),
                "open_rooms": sum(1 for room in self._rooms.values() if room.is_open),
                "total_members": sum(room.member_count for room in self._rooms.values()),
                "buffered_messages": sum(len(room.messages) for room in self._rooms.values()),
            }
