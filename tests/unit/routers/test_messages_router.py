import pytest

from chat_presence.common.exceptions import (
    InvalidMessageError,
    NotFoundError,
    StoreUnavailableError,
    UnauthorizedError,
)
from chat_presence.domain.chat_message import ChatMessage, MessageType
from chat_presence.routers.messages import parse_limit

BODY = {"to": "bob", "text": "hi", "type": "private_message"}


def make_message(**overrides) -> ChatMessage:
    fields = {
        "id": "m1",
        "sender": "alice",
        "to": "bob",
        "text": "hi",
        "type": MessageType.PRIVATE_MESSAGE,
        "time": "10:00:00",
    }
    fields.update(overrides)
    return ChatMessage(**fields)


@pytest.mark.parametrize(
    "raw,expected",
    [(None, None), ("20", 20), ("0", None), ("-1", None), ("abc", None), ("", None)],
)
def test_parse_limit(raw, expected):
    assert parse_limit(raw) == expected


class TestPostMessage:
    def test_post_created(self, client, mock_message_service):
        mock_message_service.post.return_value = make_message()

        response = client.post("/messages", json=BODY, headers={"user": "alice"})

        assert response.status_code == 201
        assert response.json() == {
            "_id": "m1",
            "from": "alice",
            "to": "bob",
            "text": "hi",
            "type": "private_message",
            "time": "10:00:00",
        }
        mock_message_service.post.assert_called_once_with(
            sender="alice", to="bob", text="hi", type=MessageType.PRIVATE_MESSAGE
        )

    def test_unregistered_sender_is_404(self, client, mock_message_service):
        mock_message_service.post.side_effect = UnauthorizedError("who")

        response = client.post("/messages", json=BODY, headers={"user": "carol"})

        assert response.status_code == 404

    @pytest.mark.parametrize(
        "body",
        [
            {"to": "bob", "text": "hi", "type": "shout"},
            {"to": "bob", "text": "", "type": "message"},
            {"text": "hi", "type": "message"},
        ],
    )
    def test_invalid_body_is_422(self, client, mock_message_service, body):
        response = client.post("/messages", json=body, headers={"user": "alice"})

        assert response.status_code == 422
        mock_message_service.post.assert_not_called()

    @pytest.mark.parametrize(
        "error", [InvalidMessageError("bad"), StoreUnavailableError()]
    )
    def test_service_errors_are_422(self, client, mock_message_service, error):
        mock_message_service.post.side_effect = error

        response = client.post("/messages", json=BODY, headers={"user": "alice"})

        assert response.status_code == 422


class TestListMessages:
    def test_passes_requester_and_limit(self, client, mock_message_service):
        mock_message_service.list_messages.return_value = [make_message()]

        response = client.get("/messages?limit=20", headers={"user": "bob"})

        assert response.status_code == 200
        assert [m["text"] for m in response.json()] == ["hi"]
        mock_message_service.list_messages.assert_called_once_with(
            requester="bob", limit=20
        )

    def test_anonymous_with_invalid_limit(self, client, mock_message_service):
        mock_message_service.list_messages.return_value = []

        response = client.get("/messages?limit=abc")

        assert response.status_code == 200
        mock_message_service.list_messages.assert_called_once_with(
            requester=None, limit=None
        )

    def test_store_error_is_400(self, client, mock_message_service):
        mock_message_service.list_messages.side_effect = StoreUnavailableError()

        assert client.get("/messages", headers={"user": "bob"}).status_code == 400


class TestEditMessage:
    def test_edit_ok(self, client, mock_message_service):
        mock_message_service.edit.return_value = make_message(text="edited")

        response = client.put(
            "/messages/m1", json={**BODY, "text": "edited"}, headers={"user": "alice"}
        )

        assert response.status_code == 200
        assert response.json()["text"] == "edited"
        mock_message_service.edit.assert_called_once_with(
            "m1",
            requester="alice",
            to="bob",
            text="edited",
            type=MessageType.PRIVATE_MESSAGE,
        )

    @pytest.mark.parametrize(
        "error,status_code",
        [
            (NotFoundError("m1"), 404),
            (UnauthorizedError("not owner"), 401),
            (InvalidMessageError("bad"), 422),
        ],
    )
    def test_edit_errors(self, client, mock_message_service, error, status_code):
        mock_message_service.edit.side_effect = error

        response = client.put("/messages/m1", json=BODY, headers={"user": "bob"})

        assert response.status_code == status_code


class TestDeleteMessage:
    def test_delete_ok(self, client, mock_message_service):
        response = client.delete("/messages/m1", headers={"user": "alice"})

        assert response.status_code == 200
        mock_message_service.delete.assert_called_once_with("m1", requester="alice")

    @pytest.mark.parametrize(
        "error", [NotFoundError("m1"), UnauthorizedError("not owner")]
    )
    def test_not_found_or_not_owner_is_404(self, client, mock_message_service, error):
        mock_message_service.delete.side_effect = error

        response = client.delete("/messages/m1", headers={"user": "bob"})

        assert response.status_code == 404

    def test_clear(self, client, mock_message_service):
        mock_message_service.clear.return_value = 7

        response = client.delete("/messages")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "deleted": 7}
