from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from lostlink.utils.auth_helper import decode_token


router = APIRouter()


@router.websocket("/ws")
async def live_updates(websocket: WebSocket, token: str = ""):
    payload = decode_token(token) if token else None
    if not payload:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager = websocket.app.state.realtime
    user_id = str(payload["sub"])

    await manager.connect(user_id, websocket)
    try:
        while True:
            # clients only listen; anything they send is ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(user_id, websocket)
