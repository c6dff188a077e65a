"""
Tests for the session room: join window, video provisioning, chat and notes.
The Daily API is mocked; no network calls are made.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import FixedClock, auth_headers, make_appointment, make_profile

from divan.domain.sessions.schemas import NotesUpdate
from divan.domain.sessions.service import SessionService
from divan.errors import Forbidden, SessionNotOpen, UpstreamFailure, ValidationFailed
from divan.models import Appointment, ChatMessage, Notification
from divan.services.daily_service import DailyService, room_name_for
from divan.shared.clock import utcnow

START = datetime(2025, 3, 1, 14, 0)


def _daily():
    daily = MagicMock()
    daily.ensure_room = AsyncMock(side_effect=lambda name, **kwargs: {"name": name, "url": f"https://divan.daily.co/{name}"})
    daily.create_meeting_token = AsyncMock(return_value="meeting-token")
    return daily


def _service(db, settings, now, daily=None):
    return SessionService(db, settings, daily=daily or _daily(), clock=FixedClock(now))


class TestJoinWindow:
    """The room opens ten minutes early and closes at the scheduled end."""

    @pytest.mark.parametrize(
        "now, within, can_join",
        [
            (START - timedelta(minutes=11), False, False),
            (START - timedelta(minutes=10), False, True),
            (START, True, True),
            (START + timedelta(minutes=50), True, True),
            (START + timedelta(minutes=51), False, False),
        ],
    )
    def test_window_flags(self, db, settings, professional, client_profile, now, within, can_join):
        appointment = make_appointment(db, client_profile, professional, START)
        room = _service(db, settings, now).get_room(client_profile, appointment.id)

        assert room["isWithinWindow"] is within
        assert room["canJoin"] is can_join
        assert room["role"] == "client"
        assert room["professionalName"] == professional.name

    def test_cancelled_session_cannot_be_joined(self, db, settings, professional, client_profile):
        appointment = make_appointment(db, client_profile, professional, START, status="cancelled")
        room = _service(db, settings, START).get_room(professional, appointment.id)
        assert room["canJoin"] is False
        assert room["role"] == "professional"

    def test_stranger_is_forbidden(self, db, settings, professional, client_profile):
        appointment = make_appointment(db, client_profile, professional, START)
        stranger = make_profile(db, name="Estranho", email="x@example.com")
        with pytest.raises(Forbidden):
            _service(db, settings, START).get_room(stranger, appointment.id)


class TestVideoRoom:
    async def test_client_gets_room_and_token(self, db, settings, professional, client_profile):
        appointment = make_appointment(db, client_profile, professional, START)
        daily = _daily()

        result = await _service(db, settings, START, daily).ensure_video_room(client_profile, appointment.id)

        expected_name = room_name_for(appointment.id)
        assert result == {
            "roomName": expected_name,
            "roomUrl": f"https://divan.daily.co/{expected_name}",
            "token": "meeting-token",
        }
        kwargs = daily.ensure_room.await_args.kwargs
        assert kwargs["not_before"] == START - timedelta(minutes=10)
        assert kwargs["expires_at"] == appointment.end_at + timedelta(hours=2)
        token_kwargs = daily.create_meeting_token.await_args.kwargs
        assert token_kwargs["is_owner"] is False
        assert token_kwargs["expires_at"] == appointment.end_at + timedelta(minutes=20)

        db.expire_all()
        assert db.get(Appointment, appointment.id).video_room_name == expected_name

    async def test_professional_is_owner_and_reuses_room(self, db, settings, professional, client_profile):
        appointment = make_appointment(db, client_profile, professional, START)
        service = _service(db, settings, START)

        first = await service.ensure_video_room(client_profile, appointment.id)
        second = await service.ensure_video_room(professional, appointment.id)

        assert first["roomName"] == second["roomName"]
        assert service.daily.create_meeting_token.await_args.kwargs["is_owner"] is True

    async def test_rescheduled_session_reprovisions_with_new_window(self, db, settings, professional, client_profile):
        moved = START + timedelta(days=7)
        appointment = make_appointment(db, client_profile, professional, moved, status="rescheduled")
        daily = _daily()

        await _service(db, settings, moved, daily).ensure_video_room(client_profile, appointment.id)

        kwargs = daily.ensure_room.await_args.kwargs
        assert daily.ensure_room.await_args.args[0] == room_name_for(appointment.id)
        assert kwargs["not_before"] == moved - timedelta(minutes=10)
        assert kwargs["expires_at"] == moved + timedelta(minutes=50, hours=2)

    async def test_chat_appointment_has_no_video(self, db, settings, professional, client_profile):
        appointment = make_appointment(db, client_profile, professional, START, appointment_type="chat")
        with pytest.raises(ValidationFailed):
            await _service(db, settings, START).ensure_video_room(client_profile, appointment.id)

    async def test_outside_window(self, db, settings, professional, client_profile):
        appointment = make_appointment(db, client_profile, professional, START)
        service = _service(db, settings, START - timedelta(hours=1))
        with pytest.raises(SessionNotOpen):
            await service.ensure_video_room(client_profile, appointment.id)
        service.daily.ensure_room.assert_not_awaited()

    async def test_provider_failure_leaves_room_unset(self, db, settings, professional, client_profile):
        appointment = make_appointment(db, client_profile, professional, START)
        daily = _daily()
        daily.ensure_room = AsyncMock(side_effect=UpstreamFailure("Falha ao criar sala de vídeo"))

        with pytest.raises(UpstreamFailure):
            await _service(db, settings, START, daily).ensure_video_room(client_profile, appointment.id)

        db.expire_all()
        assert db.get(Appointment, appointment.id).video_room_name is None


class TestDailyService:
    """REST calls to Daily, with httpx.AsyncClient patched."""

    def _http(self, *responses):
        http = MagicMock()
        http.post = AsyncMock(side_effect=list(responses))
        ctx = MagicMock()
        ctx.__aenter__.return_value = http
        return ctx, http

    def _response(self, status_code, body=None, text=""):
        response = MagicMock()
        response.status_code = status_code
        response.text = text
        response.json.return_value = body or {}
        return response

    def test_room_name_is_deterministic(self):
        assert room_name_for("0f8fad5b-d9cb-469f-a165-70867728950e") == "sess-0f8fad5bd9cb469fa165"

    async def test_existing_room_gets_new_window(self, settings):
        """A room left over from the original slot is moved to the rescheduled one"""
        moved = START + timedelta(days=7)
        ctx, http = self._http(
            self._response(400, text='{"info":"a room named sess-1 already exists"}'),
            self._response(200, {"name": "sess-1", "url": "https://divan.daily.co/sess-1"}),
        )
        with patch("divan.services.daily_service.httpx.AsyncClient", return_value=ctx):
            room = await DailyService(settings).ensure_room("sess-1", moved, moved + timedelta(hours=3))

        assert room == {"name": "sess-1", "url": "https://divan.daily.co/sess-1"}
        create_call, update_call = http.post.await_args_list
        assert create_call.kwargs["json"]["privacy"] == "private"
        assert update_call.args[0].endswith("/rooms/sess-1")
        properties = update_call.kwargs["json"]["properties"]
        assert properties["nbf"] == int(moved.replace(tzinfo=timezone.utc).timestamp())
        assert properties["exp"] == int((moved + timedelta(hours=3)).replace(tzinfo=timezone.utc).timestamp())

    async def test_room_refresh_failure_is_upstream_failure(self, settings):
        ctx, _ = self._http(
            self._response(400, text='{"info":"a room named sess-1 already exists"}'),
            self._response(404, text="not found"),
        )
        with patch("divan.services.daily_service.httpx.AsyncClient", return_value=ctx):
            with pytest.raises(UpstreamFailure):
                await DailyService(settings).ensure_room("sess-1", START, START + timedelta(hours=3))

    async def test_provider_error_is_upstream_failure(self, settings):
        ctx, _ = self._http(self._response(500, text="boom"))
        with patch("divan.services.daily_service.httpx.AsyncClient", return_value=ctx):
            with pytest.raises(UpstreamFailure):
                await DailyService(settings).create_meeting_token("sess-1", "Ana", True, START)


class TestChat:
    def test_send_and_list(self, db, settings, professional, client_profile):
        appointment = make_appointment(db, client_profile, professional, START)
        service = _service(db, settings, START + timedelta(minutes=5))

        sent = service.send_message(client_profile, appointment.id, "  Bom dia  ")
        service.send_message(professional, appointment.id, "Olá")

        assert sent.message == "Bom dia"
        assert sent.sender_role == "client"
        messages = service.list_messages(professional, appointment.id)
        assert [m.sender_role for m in messages] == ["client", "professional"]

        notice = db.query(Notification).filter(Notification.user_id == professional.id).one()
        assert notice.type == "chat_message"
        assert notice.data["chat_appointment_id"] == appointment.id
        assert notice.data["sender_name"] == client_profile.name

    def test_empty_message(self, db, settings, professional, client_profile):
        appointment = make_appointment(db, client_profile, professional, START)
        with pytest.raises(ValidationFailed):
            _service(db, settings, START).send_message(client_profile, appointment.id, "   ")

    def test_chat_closed_outside_window(self, db, settings, professional, client_profile):
        appointment = make_appointment(db, client_profile, professional, START)
        with pytest.raises(SessionNotOpen):
            _service(db, settings, START + timedelta(hours=2)).send_message(client_profile, appointment.id, "Oi")
        assert db.query(ChatMessage).count() == 0

    def test_http_chat(self, client, db, professional, client_profile):
        appointment = make_appointment(db, client_profile, professional, utcnow() - timedelta(minutes=5))

        response = client.post(
            f"/api/sessions/{appointment.id}/messages",
            json={"message": "Estou na sala"},
            headers=auth_headers(client_profile),
        )
        assert response.status_code == 201
        assert response.json()["message"]["senderRole"] == "client"

        response = client.get(f"/api/sessions/{appointment.id}/messages", headers=auth_headers(professional))
        assert [m["message"] for m in response.json()["messages"]] == ["Estou na sala"]

    def test_http_message_too_long(self, client, db, professional, client_profile):
        appointment = make_appointment(db, client_profile, professional, utcnow() - timedelta(minutes=5))
        response = client.post(
            f"/api/sessions/{appointment.id}/messages",
            json={"message": "x" * 4001},
            headers=auth_headers(client_profile),
        )
        assert response.status_code == 400


class TestNotes:
    def test_professional_upserts_notes(self, db, settings, professional, client_profile):
        appointment = make_appointment(db, client_profile, professional, START)
        service = _service(db, settings, START)

        service.upsert_notes(professional, appointment.id, NotesUpdate(complaint="Ansiedade", plan="Semanal"))
        notes = service.upsert_notes(professional, appointment.id, NotesUpdate(plan="Quinzenal"))

        assert notes.complaint == "Ansiedade"
        assert notes.plan == "Quinzenal"
        assert notes.user_id == client_profile.id

    def test_client_cannot_read_notes(self, db, settings, professional, client_profile):
        appointment = make_appointment(db, client_profile, professional, START)
        with pytest.raises(Forbidden):
            _service(db, settings, START).get_notes(client_profile, appointment.id)

    def test_http_notes(self, client, db, professional, client_profile):
        appointment = make_appointment(db, client_profile, professional, START)
        headers = auth_headers(professional)

        assert client.get(f"/api/sessions/{appointment.id}/notes", headers=headers).json() == {"notes": None}

        response = client.put(
            f"/api/sessions/{appointment.id}/notes", json={"observations": "Primeira sessão"}, headers=headers
        )
        assert response.json()["notes"]["observations"] == "Primeira sessão"

        response = client.get(f"/api/sessions/{appointment.id}/notes", headers=auth_headers(client_profile))
        assert response.status_code == 403
