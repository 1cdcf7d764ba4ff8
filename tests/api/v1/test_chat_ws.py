import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from repairhub.main import app
from repairhub.services.chat_connection_manager import chat_manager

WS_PATH = "/api/v1/ws"


def sync(ws):
    """Round-trip a ping so every earlier frame on this socket has been handled."""
    ws.send_json({"type": "ping"})
    assert ws.receive_json() == {"type": "pong"}


def test_message_relayed_to_whole_room():
    with TestClient(app) as client:
        with client.websocket_connect(WS_PATH) as agent, client.websocket_connect(WS_PATH) as customer:
            agent.send_json({"type": "join", "chatId": "c1"})
            customer.send_json({"type": "join", "chatId": "c1"})
            sync(agent)
            sync(customer)

            customer.send_json({
                "type": "sendMessage",
                "chatId": "c1",
                "sessionId": "session_dana",
                "message": {"sender": {"name": "Dana"}, "content": "Is my car ready?"},
            })

            for ws in (agent, customer):
                event = ws.receive_json()
                assert event["type"] == "message"
                assert event["chatId"] == "c1"
                assert event["sessionId"] == "session_dana"
                assert event["message"]["content"] == "Is my car ready?"


def test_typing_skips_sender():
    with TestClient(app) as client:
        with client.websocket_connect(WS_PATH) as agent, client.websocket_connect(WS_PATH) as customer:
            agent.send_json({"type": "join", "chatId": "c2"})
            customer.send_json({"type": "join", "chatId": "c2"})
            sync(agent)
            sync(customer)

            agent.send_json({"type": "typing", "chatId": "c2", "userId": "agent-1", "isTyping": True})

            assert customer.receive_json() == {
                "type": "typing",
                "chatId": "c2",
                "userId": "agent-1",
                "isTyping": True,
            }
            # Next frame for the sender is the pong, not its own typing event
            sync(agent)


def test_status_change_and_assignment_broadcast():
    with TestClient(app) as client:
        with client.websocket_connect(WS_PATH) as agent, client.websocket_connect(WS_PATH) as customer:
            customer.send_json({"type": "join", "chatId": "c3"})
            sync(customer)

            agent.send_json({"type": "assign", "chatId": "c3", "assignedTo": {"_id": "u1", "name": "Sam"}})
            assignment = customer.receive_json()
            assert assignment["type"] == "assignment"
            assert assignment["assignedTo"]["name"] == "Sam"

            agent.send_json({"type": "statusChange", "chatId": "c3", "status": "resolved"})
            assert customer.receive_json() == {"type": "statusChange", "chatId": "c3", "status": "resolved"}


def test_leave_stops_room_delivery():
    with TestClient(app) as client:
        with client.websocket_connect(WS_PATH) as agent, client.websocket_connect(WS_PATH) as customer:
            customer.send_json({"type": "join", "chatId": "c4"})
            customer.send_json({"type": "leave", "chatId": "c4"})
            sync(customer)

            agent.send_json({"type": "statusChange", "chatId": "c4", "status": "closed"})
            sync(agent)
            sync(customer)


def test_invalid_frames_get_error_reply():
    with TestClient(app) as client:
        with client.websocket_connect(WS_PATH) as ws:
            ws.send_text("not json")
            assert ws.receive_json() == {"type": "error", "message": "Invalid command"}
            ws.send_json({"type": "selfDestruct"})
            assert ws.receive_json()["type"] == "error"
            sync(ws)


def test_notification_broadcast_reaches_connected_clients():
    with TestClient(app) as client:
        with client.websocket_connect(WS_PATH) as ws:
            sync(ws)
            response = client.post("/api/v1/notifications", json={
                "type": "urgent",
                "title": "Shop closing early",
                "message": "Pickups after 4pm move to tomorrow",
                "priority": "urgent",
                "category": "system",
            })
            assert response.status_code == 202
            assert response.json()["delivered"] >= 1

            event = ws.receive_json()
            assert event["type"] == "notification"
            assert event["data"]["title"] == "Shop closing early"


def test_notification_broadcast_validates_body():
    with TestClient(app) as client:
        response = client.post("/api/v1/notifications", json={"title": "incomplete"})
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_health():
    with TestClient(app) as client:
        response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_unreadable_frame_releases_socket():
    with TestClient(app) as client:
        with client.websocket_connect(WS_PATH) as ws:
            ws.send_json({"type": "join", "chatId": "binary-room"})
            sync(ws)
            assert "binary-room" in chat_manager.rooms

            ws.send_bytes(b"\x00\x01")
            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()

        assert "binary-room" not in chat_manager.rooms
