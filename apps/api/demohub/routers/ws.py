import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

router = APIRouter()
logger = structlog.get_logger()


@router.websocket("/ws/demo/{demo_id}")
async def demo_ws(websocket: WebSocket, demo_id: str):
    broadcaster = websocket.app.state.broadcaster
    await websocket.accept()
    subscription = broadcaster.add_socket(demo_id, websocket)
    structlog.contextvars.bind_contextvars(demo_id=demo_id)
    try:
        while True:
            # Subscribers never publish; anything but a pong is dropped
            message = await websocket.receive_json()
            if isinstance(message, dict) and message.get("type") == "system.pong":
                logger.debug("ws_pong_received", demo_id=demo_id)
                continue
            logger.debug("ws_client_message_ignored", demo_id=demo_id)
    except WebSocketDisconnect:
        logger.info("ws_disconnected", demo_id=demo_id)
    except ValueError:
        logger.warning("ws_invalid_client_frame", demo_id=demo_id)
        await websocket.close(code=1003)
    finally:
        structlog.contextvars.unbind_contextvars("demo_id")
        subscription.unsubscribe()
