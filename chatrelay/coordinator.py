"""
Session coordinator: per-connection event handling over the two registries
"""

import asyncio
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional
from .connection_registry import ConnectionRegistry
from .room_manager import LeaveOutcome, RoomManager
from .transport import ConnectionHub
from .models import Session
from .identity import reverse_lookup
from .validators import parse_frame, validate_create_room, validate_join_room, validate_message
from .constants import (
    AVAILABLE_ROOMS,
    CONNECTION_REJECTED,
    CREATE_ROOM,
    CREATE_ROOM_ERROR,
    DUPLICATE_IDENTITY,
    ERROR,
    ERROR_MESSAGES,
    GET_ROOMS,
    HOST_INFO,
    HOSTNAME_LOOKUP,
    JOIN_ROOM,
    JOIN_ROOM_ERROR,
    LEAVE_ROOM,
    MESSAGE_ERROR,
    NOT_IN_ROOM,
    POLICY_VIOLATION_CLOSE_CODE,
    RECEIVE_MESSAGE,
    ROOM_CREATED,
    ROOM_HISTORY,
    ROOM_LIST_UPDATED,
    SEND_MESSAGE,
    USER_JOINED,
    USER_LEFT,
)
from .logger import get_logger, log_connection_event, log_message_event

logger = get_logger()

Resolver = Callable[[str, str], Awaitable[str]]

class SessionCoordinator:
    """Validates inbound events against the registries and emits the results"""
    
    def __init__(self, transport: Optional[ConnectionHub] = None,
                 connections: Optional[ConnectionRegistry] = None,
                 rooms: Optional[RoomManager] = None,
                 resolver: Optional[Resolver] = reverse_lookup,
                 hostname_lookup: bool = HOSTNAME_LOOKUP):
        self.transport = transport if transport is not None else ConnectionHub()
        self.connections = connections if connections is not None else ConnectionRegistry()
        self.rooms = rooms if rooms is not None else RoomManager()
        self.resolver = resolver
        self.hostname_lookup = hostname_lookup
        # session_id -> pending hostname lookup
        self._lookups: Dict[str, asyncio.Task] = {}
        self._handlers = {
            CREATE_ROOM: self.create_room,
            JOIN_ROOM: self.join_room,
            SEND_MESSAGE: self.send_message,
            LEAVE_ROOM: self.leave_room,
            GET_ROOMS: self.get_rooms,
        }
    
    async def connect(self, websocket: Any, identity: str, peer_address: str = "") -> Optional[Session]:
        """
        Accept or reject a new connection
        
        Args:
            websocket: Accepted WebSocket
            identity: Client identity derived from the handshake
            peer_address: Raw peer address, used for the hostname lookup
            
        Returns:
            The new Session, or None if the identity already has one
        """
        session = Session(session_id=uuid.uuid4().hex, identity=identity, peer_address=peer_address)
        
        if not await self.connections.register_if_absent(identity, session.session_id):
            session.closed = True
            log_connection_event(identity, session.session_id, "reject", "duplicate identity")
            await self.transport.reject(
                websocket,
                CONNECTION_REJECTED,
                {"message": ERROR_MESSAGES[DUPLICATE_IDENTITY]},
                POLICY_VIOLATION_CLOSE_CODE,
                "Duplicate identity"
            )
            return None
        
        self.transport.attach(session.session_id, websocket)
        log_connection_event(identity, session.session_id, "connect")
        
        await self.get_rooms(session)
        self._start_hostname_lookup(session)
        return session
    
    def _start_hostname_lookup(self, session: Session):
        task = asyncio.create_task(self._announce_host(session))
        self._lookups[session.session_id] = task
        task.add_done_callback(lambda _: self._lookups.pop(session.session_id, None))
    
    async def _announce_host(self, session: Session):
        """Detached: never awaited by the accept path"""
        host = session.identity
        if self.hostname_lookup and self.resolver is not None:
            host = await self.resolver(session.peer_address or session.identity, session.identity)
        
        if session.closed:
            return
        
        log_connection_event(session.identity, session.session_id, "host_info", f"host={host}")
        await self.transport.send(session.session_id, HOST_INFO, {"ip": session.identity, "host": host})
    
    async def handle_frame(self, session: Session, raw: str):
        """Decode one text frame and dispatch it"""
        is_valid, error_msg, event, payload = parse_frame(raw)
        if not is_valid:
            await self.transport.send(session.session_id, ERROR, {"message": error_msg})
            return
        
        await self.dispatch(session, event, payload)
    
    async def dispatch(self, session: Session, event: str, payload: Dict[str, Any]):
        if session.closed:
            return
        
        await self._handlers[event](session, payload)
    
    async def create_room(self, session: Session, payload: Dict[str, Any]):
        is_valid, error_msg, room_name, max_users = validate_create_room(payload)
        if not is_valid:
            await self.transport.send(session.session_id, CREATE_ROOM_ERROR, {"message": error_msg})
            return
        
        room_code = await self.rooms.create(room_name, max_users)
        await self.transport.send(session.session_id, ROOM_CREATED, {"roomCode": room_code})
        await self.transport.send_all(ROOM_LIST_UPDATED, {})
    
    async def join_room(self, session: Session, payload: Dict[str, Any]):
        is_valid, error_msg, room_code, username = validate_join_room(payload)
        if not is_valid:
            await self.transport.send(session.session_id, JOIN_ROOM_ERROR, {"message": error_msg})
            return
        
        success, error_key, outcome = await self.rooms.join(
            room_code, session.session_id, username, previous_code=session.room_code
        )
        if not success:
            await self.transport.send(session.session_id, JOIN_ROOM_ERROR, {"message": ERROR_MESSAGES[error_key]})
            return
        
        session.enter_room(room_code, username)
        if outcome.left is not None:
            await self._announce_departure(outcome.left)
        
        await self.transport.send_many(outcome.recipients, USER_JOINED, outcome.joined_event())
        await self.transport.send(session.session_id, ROOM_HISTORY, outcome.history_event())
    
    async def send_message(self, session: Session, payload: Dict[str, Any]):
        if not session.in_room:
            await self.transport.send(session.session_id, MESSAGE_ERROR, {"message": ERROR_MESSAGES[NOT_IN_ROOM]})
            return
        
        is_valid, error_msg, text = validate_message(payload)
        if not is_valid:
            await self.transport.send(session.session_id, MESSAGE_ERROR, {"message": error_msg})
            return
        
        success, error_key, outcome = await self.rooms.send(session.room_code, session.session_id, text)
        if not success:
            await self.transport.send(session.session_id, MESSAGE_ERROR, {"message": ERROR_MESSAGES[error_key]})
            return
        
        delivered = await self.transport.send_many(outcome.recipients, RECEIVE_MESSAGE, outcome.message.to_dict())
        log_message_event(outcome.message.id, outcome.message.username, outcome.room_code, "broadcast", f"recipients={delivered}")
    
    async def leave_room(self, session: Session, payload: Optional[Dict[str, Any]] = None):
        outcome = await self.rooms.leave(session.session_id, session.room_code)
        session.exit_room()
        if outcome is not None:
            await self._announce_departure(outcome)
    
    async def get_rooms(self, session: Session, payload: Optional[Dict[str, Any]] = None):
        await self.transport.send(session.session_id, AVAILABLE_ROOMS, await self.rooms.list_open())
    
    async def disconnect(self, session: Session):
        """Terminal transition; safe to call more than once"""
        if session.closed:
            return
        session.closed = True
        
        lookup = self._lookups.pop(session.session_id, None)
        if lookup is not None:
            lookup.cancel()
        
        self.transport.detach(session.session_id)
        await self.connections.unregister(session.identity, session.session_id)
        
        outcome = await self.rooms.disconnect_cleanup(session.session_id, session.room_code)
        session.exit_room()
        if outcome is not None:
            await self._announce_departure(outcome)
        
        log_connection_event(session.identity, session.session_id, "disconnect")
    
    async def _announce_departure(self, outcome: LeaveOutcome):
        await self.transport.send_many(outcome.recipients, USER_LEFT, outcome.to_event())
        if outcome.room_deleted:
            await self.transport.send_all(ROOM_LIST_UPDATED, {})
    
    async def get_stats(self) -> Dict[str, int]:
        """
        Get overall relay statistics
        
        Returns:
            Dictionary with connection and room stats
        """
        stats = {
            "connected_sessions": await self.connections.count(),
            "attached_sockets": len(self.transport),
        }
        stats.update(await self.rooms.get_room_stats())
        return stats
    
    async def shutdown(self):
        """Cancel pending hostname lookups"""
        for task in list(self._lookups.values()):
            task.cancel()
        self._lookups.clear()
