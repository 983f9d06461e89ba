"""
Client identity derivation and best-effort reverse hostname lookup
"""

import asyncio
import socket
from typing import Mapping, Optional
from .constants import IPV4_MAPPED_PREFIX, UNKNOWN_IDENTITY
from .logger import get_logger

logger = get_logger()

def strip_ipv4_mapped(address: str) -> str:
    return address.replace(IPV4_MAPPED_PREFIX, "")

def client_identity(headers: Mapping[str, str], peer_address: Optional[str]) -> str:
    """
    Derive the identity used for the one-session-per-identity rule
    
    Args:
        headers: Handshake headers
        peer_address: Raw peer address from the ASGI server
        
    Returns:
        First hop of X-Forwarded-For when present, otherwise the peer address
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return strip_ipv4_mapped(first_hop)
    
    if peer_address:
        return strip_ipv4_mapped(peer_address)
    
    return UNKNOWN_IDENTITY

async def reverse_lookup(address: str, fallback: str) -> str:
    """
    Resolve a hostname for address without blocking the event loop
    
    Args:
        address: Address to resolve
        fallback: Value returned when the lookup fails
        
    Returns:
        Resolved hostname or fallback
    """
    if not address:
        return fallback
    
    loop = asyncio.get_running_loop()
    try:
        hostname, _, _ = await loop.run_in_executor(None, socket.gethostbyaddr, address)
    except (OSError, UnicodeError) as e:
        logger.debug(f"Reverse lookup failed for {address}: {e}")
        return fallback
    
    return hostname or fallback
