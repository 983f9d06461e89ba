"""
Connection hub: delivers outbound events to one session, a group, or everyone
"""

import json
from typing import Any, Dict, Iterable, List
from .logger import get_logger, log_websocket_event

logger = get_logger()

def encode_event(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": data}, ensure_ascii=False)

class ConnectionHub:
    """Tracks attached WebSockets by session id and fans events out to them"""
    
    def __init__(self):
        # session_id -> WebSocket
        self._connections: Dict[str, Any] = {}
    
    def attach(self, session_id: str, websocket: Any):
        self._connections[session_id] = websocket
        log_websocket_event("attached", session_id, f"connections={len(self._connections)}")
    
    def detach(self, session_id: str):
        if self._connections.pop(session_id, None) is not None:
            log_websocket_event("detached", session_id, f"connections={len(self._connections)}")
    
    def session_ids(self) -> List[str]:
        return list(self._connections)
    
    async def send(self, session_id: str, event: str, data: Any = None) -> bool:
        """
        Deliver an event to a single session
        
        Args:
            session_id: Target session
            event: Outbound event name
            data: JSON-serializable payload
            
        Returns:
            True if the frame was written
        """
        websocket = self._connections.get(session_id)
        if websocket is None:
            return False
        
        try:
            await websocket.send_text(encode_event(event, data))
        except Exception as e:
            # One dead socket must not break the fan-out
            logger.error(f"Failed to send {event} to {session_id}: {e}")
            return False
        
        log_websocket_event("sent", session_id, f"event={event}")
        return True
    
    async def send_many(self, session_ids: Iterable[str], event: str, data: Any = None) -> int:
        """
        Deliver an event to every listed session
        
        Args:
            session_ids: Target sessions, e.g. the members of a room
            event: Outbound event name
            data: JSON-serializable payload
            
        Returns:
            Number of successful deliveries
        """
        delivered = 0
        for session_id in list(session_ids):
            if await self.send(session_id, event, data):
                delivered += 1
        return delivered
    
    async def send_all(self, event: str, data: Any = None) -> int:
        """Deliver a global notice to every attached session"""
        return await self.send_many(self.session_ids(), event, data)
    
    async def reject(self, websocket: Any, event: str, data: Any, code: int, reason: str = ""):
        """Notify and close a socket that was never attached"""
        try:
            await websocket.send_text(encode_event(event, data))
            await websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.error(f"Failed to reject connection: {e}")
    
    def __len__(self) -> int:
        return len(self._connections)
