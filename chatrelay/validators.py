"""
Inbound payload validation for the chat relay
"""

import json
from typing import Any, Dict, Optional, Tuple
from .constants import (
    DEFAULT_MAX_USERS,
    ERROR_MESSAGES,
    INBOUND_EVENTS,
    MAX_MESSAGE_LENGTH,
    MAX_ROOM_NAME_LENGTH,
    MAX_USERNAME_LENGTH,
)
from .models import sanitize_text
from .logger import log_security_event

def parse_frame(raw: str) -> Tuple[bool, str, Optional[str], Dict[str, Any]]:
    """
    Decode an inbound {"event", "data"} frame
    
    Args:
        raw: Text frame from the WebSocket
        
    Returns:
        Tuple of (is_valid, error_message, event_name, payload)
    """
    try:
        frame = json.loads(raw)
    except (json.JSONDecodeError, RecursionError):
        log_security_event("invalid_json", {"length": len(raw)})
        return False, ERROR_MESSAGES["invalid_json"], None, {}
    
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        log_security_event("invalid_frame", {"frame_type": type(frame).__name__})
        return False, ERROR_MESSAGES["invalid_json"], None, {}
    
    event = frame["event"]
    if event not in INBOUND_EVENTS:
        log_security_event("unknown_event", {"event": event[:40]})
        return False, ERROR_MESSAGES["unknown_event"], event, {}
    
    payload = frame.get("data")
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        log_security_event("invalid_payload_type", {"event": event, "payload_type": type(payload).__name__})
        return False, ERROR_MESSAGES["invalid_json"], event, {}
    
    return True, "", event, payload

def validate_create_room(payload: Dict[str, Any]) -> Tuple[bool, str, str, int]:
    """
    Validate a create_room payload
    
    Args:
        payload: {roomName, maxUsers?}
        
    Returns:
        Tuple of (is_valid, error_message, room_name, max_users)
    """
    room_name = payload.get("roomName")
    if not isinstance(room_name, str):
        return False, ERROR_MESSAGES["invalid_room_name"], "", 0
    room_name = sanitize_text(room_name).strip()[:MAX_ROOM_NAME_LENGTH]
    
    max_users = payload.get("maxUsers")
    if not max_users:
        return True, "", room_name, DEFAULT_MAX_USERS
    
    # bool is an int subclass; true is not a capacity
    if isinstance(max_users, bool):
        return False, ERROR_MESSAGES["invalid_max_users"], "", 0
    try:
        capacity = int(max_users)
    except (TypeError, ValueError):
        return False, ERROR_MESSAGES["invalid_max_users"], "", 0
    if isinstance(max_users, float) and capacity != max_users:
        return False, ERROR_MESSAGES["invalid_max_users"], "", 0
    
    if capacity < 1:
        return False, ERROR_MESSAGES["invalid_max_users"], "", 0
    
    return True, "", room_name, capacity

def validate_join_room(payload: Dict[str, Any]) -> Tuple[bool, str, str, str]:
    """
    Validate a join_room payload
    
    Args:
        payload: {roomCode, username}
        
    Returns:
        Tuple of (is_valid, error_message, room_code, username)
    """
    room_code = payload.get("roomCode")
    username = payload.get("username")
    if not isinstance(room_code, str) or not isinstance(username, str):
        return False, ERROR_MESSAGES["invalid_join"], "", ""
    
    room_code = room_code.strip().upper()
    username = sanitize_text(username).strip()[:MAX_USERNAME_LENGTH]
    return True, "", room_code, username

def validate_message(payload: Dict[str, Any]) -> Tuple[bool, str, str]:
    """
    Validate a send_message payload
    
    Args:
        payload: {text}
        
    Returns:
        Tuple of (is_valid, error_message, text)
    """
    text = payload.get("text")
    if not isinstance(text, str):
        return False, ERROR_MESSAGES["invalid_message"], ""
    
    text = sanitize_text(text)
    if len(text) > MAX_MESSAGE_LENGTH:
        return False, ERROR_MESSAGES["invalid_message"], ""
    
    return True, "", text
