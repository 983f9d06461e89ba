"""
Ephemeral multi-room chat relay
In-memory rooms, one session per client identity, bounded history
"""

from .models import Session, Room, Member, ChatMessage
from .connection_registry import ConnectionRegistry
from .room_manager import RoomManager, JoinOutcome, LeaveOutcome, SendOutcome, generate_room_code
from .transport import ConnectionHub
from .coordinator import SessionCoordinator
from .identity import client_identity, reverse_lookup
from .validators import parse_frame, validate_create_room, validate_join_room, validate_message
from .constants import *
from .logger import (
    get_logger,
    log_security_event,
    log_connection_event,
    log_room_event,
    log_message_event,
    log_websocket_event,
    log_system_event
)

__all__ = [
    'Session',
    'Room',
    'Member',
    'ChatMessage',
    'ConnectionRegistry',
    'RoomManager',
    'JoinOutcome',
    'LeaveOutcome',
    'SendOutcome',
    'generate_room_code',
    'ConnectionHub',
    'SessionCoordinator',
    'client_identity',
    'reverse_lookup',
    'parse_frame',
    'validate_create_room',
    'validate_join_room',
    'validate_message',
    'get_logger',
    'log_security_event',
    'log_connection_event',
    'log_room_event',
    'log_message_event',
    'log_websocket_event',
    'log_system_event'
]
