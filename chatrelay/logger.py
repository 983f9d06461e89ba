"""
Logging configuration for the chat relay
"""

import logging
import sys
from typing import Optional
from .constants import LOG_LEVEL

class SecureFormatter(logging.Formatter):
    """Formatter that strips line breaks smuggled in through client-supplied values"""
    
    def format(self, record):
        message = super().format(record)
        if record.exc_info:
            return message
        # Client text must not forge extra log lines
        return message.replace("\r", "\\r").replace("\n", "\\n")

def get_logger(name: str = "chat_relay") -> logging.Logger:
    """
    Get the relay logger, configuring it on first use
    
    Args:
        name: Logger name
        
    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(SecureFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        
        logger.addHandler(handler)
        logger.setLevel(LOG_LEVEL)
        logger.propagate = False
    
    return logger

def log_security_event(event_type: str, details: dict, logger: Optional[logging.Logger] = None):
    """
    Log rejected connections and malformed input with structured data
    
    Args:
        event_type: Type of security event
        details: Event details
        logger: Logger instance (optional)
    """
    if logger is None:
        logger = get_logger()
    
    logger.warning(f"SECURITY_EVENT: {event_type} | {details}")

def log_connection_event(identity: str, session_id: str, action: str, details: str = ""):
    """
    Log session lifecycle events
    
    Args:
        identity: Client network identity
        session_id: Session identifier
        action: Action (connect/reject/disconnect/host_info)
        details: Additional details
    """
    get_logger().info(f"CONNECTION_EVENT: {action} | ip={identity} | session={session_id} | {details}")

def log_room_event(room_code: str, action: str, details: str = ""):
    """
    Log room lifecycle events
    
    Args:
        room_code: Room code
        action: Action (create/join/leave/delete/error)
        details: Additional details
    """
    get_logger().info(f"ROOM_EVENT: {action} | room={room_code} | {details}")

def log_message_event(message_id: str, username: str, room_code: str, action: str, details: str = ""):
    """
    Log message events; bodies are never logged
    
    Args:
        message_id: Message identifier
        username: Author username
        room_code: Room code
        action: Action (append/broadcast/error)
        details: Additional details
    """
    get_logger().info(f"MESSAGE_EVENT: {action} | id={message_id} | user={username} | room={room_code} | {details}")

def log_websocket_event(event_type: str, connection_id: str, details: str = ""):
    """
    Log frame-level WebSocket events
    
    Args:
        event_type: Type of WebSocket event
        connection_id: Session identifier
        details: Additional details
    """
    get_logger().debug(f"WEBSOCKET_EVENT: {event_type} | conn={connection_id} | {details}")

def log_system_event(event_type: str, details: str, level: str = "info"):
    """
    Log system-level events
    
    Args:
        event_type: Type of system event
        details: Event details
        level: Log level (info/warning/error)
    """
    logger = get_logger()
    log_message = f"SYSTEM_EVENT: {event_type} | {details}"
    
    if level == "warning":
        logger.warning(log_message)
    elif level == "error":
        logger.error(log_message)
    else:
        logger.info(log_message)
