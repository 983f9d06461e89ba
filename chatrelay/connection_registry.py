"""
Connection registry enforcing one active session per client identity
"""

import asyncio
from typing import Dict, Optional
from .logger import get_logger, log_security_event

logger = get_logger()

class ConnectionRegistry:
    """Maps a client identity to its single active session id"""
    
    def __init__(self):
        # identity -> session_id
        self._sessions: Dict[str, str] = {}
        self._lock = asyncio.Lock()
    
    async def register_if_absent(self, identity: str, session_id: str) -> bool:
        """
        Register session_id for identity unless another session holds it
        
        Args:
            identity: Client network identity
            session_id: Session asking to be registered
            
        Returns:
            True if accepted, False if the identity already has a session
        """
        async with self._lock:
            current = self._sessions.get(identity)
            if current is not None and current != session_id:
                log_security_event("duplicate_identity", {
                    "identity": identity,
                    "active_session": current,
                    "rejected_session": session_id
                })
                return False
            
            self._sessions[identity] = session_id
            logger.info(f"Identity registered: {identity} -> {session_id}")
            return True
    
    async def unregister(self, identity: str, session_id: str) -> bool:
        """
        Remove the mapping only if it still belongs to session_id
        
        Args:
            identity: Client network identity
            session_id: Session asking to be removed
            
        Returns:
            True if the mapping was removed
        """
        async with self._lock:
            if self._sessions.get(identity) != session_id:
                return False
            
            del self._sessions[identity]
            logger.info(f"Identity released: {identity} <- {session_id}")
            return True
    
    async def session_for(self, identity: str) -> Optional[str]:
        async with self._lock:
            return self._sessions.get(identity)
    
    async def count(self) -> int:
        async with self._lock:
            return len(self._sessions)
