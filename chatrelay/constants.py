"""
Limits, defaults and configuration for the chat relay
"""

import os

# Room limits
DEFAULT_MAX_USERS = 10
MAX_HISTORY_MESSAGES = 100
MAX_ROOM_NAME_LENGTH = 50
ROOM_CODE_BYTES = 3
ROOM_CODE_ATTEMPTS = 5

# Payload limits
MAX_MESSAGE_LENGTH = 5000
MAX_USERNAME_LENGTH = 30

# Control characters except newlines and tabs
MESSAGE_SANITIZATION_PATTERN = r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]'
IPV4_MAPPED_PREFIX = "::ffff:"
UNKNOWN_IDENTITY = "unknown"

# Process configuration
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT") or 5000)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
HOSTNAME_LOOKUP = os.getenv("HOSTNAME_LOOKUP", "1").lower() not in ("0", "false", "no", "off")

# Security headers
CORS_ORIGINS = ["*"]
CORS_ALLOW_CREDENTIALS = False

# WebSocket close codes
POLICY_VIOLATION_CLOSE_CODE = 1008

# Inbound events
CREATE_ROOM = "create_room"
JOIN_ROOM = "join_room"
SEND_MESSAGE = "send_message"
LEAVE_ROOM = "leave_room"
GET_ROOMS = "get_rooms"

INBOUND_EVENTS = (CREATE_ROOM, JOIN_ROOM, SEND_MESSAGE, LEAVE_ROOM, GET_ROOMS)

# Outbound events
HOST_INFO = "host_info"
CONNECTION_REJECTED = "connection_rejected"
AVAILABLE_ROOMS = "available_rooms"
ROOM_CREATED = "room_created"
CREATE_ROOM_ERROR = "create_room_error"
ROOM_LIST_UPDATED = "room_list_updated"
JOIN_ROOM_ERROR = "join_room_error"
USER_JOINED = "user_joined"
ROOM_HISTORY = "room_history"
MESSAGE_ERROR = "message_error"
RECEIVE_MESSAGE = "receive_message"
USER_LEFT = "user_left"
ERROR = "error"

# Error keys returned by the registries
DUPLICATE_IDENTITY = "duplicate_identity"
ROOM_NOT_FOUND = "room_not_found"
ROOM_FULL = "room_full"
NOT_IN_ROOM = "not_in_room"

# Error messages shown to clients
ERROR_MESSAGES = {
    DUPLICATE_IDENTITY: "Ya estás conectado desde otro navegador.",
    ROOM_NOT_FOUND: "La sala no existe.",
    ROOM_FULL: "La sala está llena.",
    NOT_IN_ROOM: "No estás en una sala válida.",
    "invalid_room_name": "El nombre de la sala no es válido.",
    "invalid_max_users": "El máximo de usuarios debe ser un número entero positivo.",
    "invalid_join": "Datos de acceso a la sala no válidos.",
    "invalid_message": f"El mensaje debe ser texto de como máximo {MAX_MESSAGE_LENGTH} caracteres.",
    "invalid_json": "Formato JSON no válido.",
    "unknown_event": "Evento desconocido.",
}
