"""
FastAPI WebSocket Chat Relay
Ephemeral multi-room chat: discover, create and join rooms, broadcast to members
"""

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import asyncio
import uvicorn

from chatrelay import (
    SessionCoordinator,
    client_identity,
    get_logger,
    log_security_event,
    log_websocket_event,
    log_system_event,
    CORS_ORIGINS,
    CORS_ALLOW_CREDENTIALS,
    DEFAULT_MAX_USERS,
    HOST,
    LOG_LEVEL,
    MAX_HISTORY_MESSAGES,
    PORT
)

# Global instances
coordinator = SessionCoordinator()
logger = get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    log_system_event("startup", f"Chat relay starting on port {PORT}")

    yield

    await coordinator.shutdown()
    log_system_event("shutdown", "Chat relay shutting down")

# Create FastAPI app
app = FastAPI(
    title="WebSocket Chat Relay",
    description="Ephemeral in-memory multi-room chat",
    version="1.0.0",
    lifespan=lifespan
)

# Any origin may connect
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=CORS_ALLOW_CREDENTIALS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    try:
        stats = await coordinator.get_stats()

        return {
            "status": "healthy",
            "timestamp": asyncio.get_event_loop().time(),
            "connections": stats["connected_sessions"],
            "rooms": stats["total_rooms"]
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")

@app.get("/stats")
async def get_stats():
    """Get relay statistics"""
    try:
        stats = await coordinator.get_stats()

        return {
            "server": "WebSocket Chat Relay",
            "timestamp": asyncio.get_event_loop().time(),
            "stats": stats,
            "limits": {
                "default_max_users": DEFAULT_MAX_USERS,
                "max_history_messages": MAX_HISTORY_MESSAGES
            }
        }
    except Exception as e:
        logger.error(f"Stats endpoint failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to get stats")

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Main WebSocket endpoint: one session per client identity"""
    await websocket.accept()

    peer_address = websocket.client.host if websocket.client else ""
    identity = client_identity(websocket.headers, peer_address)
    logger.info(f"WebSocket connection attempt from {identity}")

    session = await coordinator.connect(websocket, identity, peer_address)
    if session is None:
        return

    try:
        while True:
            raw = await websocket.receive_text()
            log_websocket_event("frame_received", session.session_id, f"length={len(raw)}")

            try:
                await coordinator.handle_frame(session, raw)
            except Exception as e:
                logger.error(f"Frame handling error for {session.session_id}: {e}")
                log_security_event("frame_handling_error", {
                    "session": session.session_id,
                    "identity": identity,
                    "error": str(e)
                })
                # Continue processing other frames
                continue

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for {identity} ({session.session_id})")

    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        log_security_event("websocket_error", {
            "client_ip": identity,
            "error": str(e)
        })

    finally:
        await coordinator.disconnect(session)

if __name__ == "__main__":
    logger.info("Starting WebSocket Chat Relay...")

    uvicorn.run(
        "main:app",
        host=HOST,
        port=PORT,
        reload=False,
        log_level=LOG_LEVEL.lower(),
        access_log=True,
        proxy_headers=True,
        ws_ping_interval=20,
        ws_ping_timeout=10,
    )
