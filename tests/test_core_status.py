"""Tests for status parsing and the status query."""

import json
from uuid import UUID

import pytest

from conftest import FakeSession
from rconctl.api.client import CommandTooLongError, RconAuthError, RconConnectionError
from rconctl.core.state import SharedState
from rconctl.core.status import (
    StatusParseError,
    StatusParser,
    StatusQueryError,
    component_text,
    parse_structured,
    parse_unstructured,
)
from rconctl.models.status import OFFLINE, OfflineStatus, OnlineStatus, PlayerEntry

STYLED_PAYLOAD = json.dumps(
    {
        "current_players": 1,
        "max_players": 8,
        "list": [
            {
                "name": "Player839",
                "nickname": "<rainbow>test",
                "nickname_styled": {
                    "extra": [
                        {
                            "extra": [
                                {"color": "#FF0000", "text": "t"},
                                {"color": "#CBFF00", "text": "e"},
                                {"color": "#00FF66", "text": "s"},
                                {"color": "#0065FF", "text": "t"},
                            ],
                            "text": "",
                        }
                    ],
                    "text": "#",
                },
                "uuid": "66397f00-f974-3e3d-944b-5f58f7613e27",
            }
        ],
        "tps": [20.0, 19.98, 19.5, 20, 18.25],
    }
)


class TestParseStructured:
    """Tests for parse_structured."""

    def test_minimal_payload(self) -> None:
        """Test the simplest well-formed payload."""
        payload = (
            '{"current_players":1,"max_players":8,'
            '"list":[{"name":"P1","nickname":null,"uuid":null}],"tps":null}'
        )
        assert parse_structured(payload) == OnlineStatus(
            current_players=1,
            max_players=8,
            players=(PlayerEntry(name="P1"),),
            tps=None,
        )

    def test_full_payload(self) -> None:
        """Test nickname, styled nickname, UUID and TPS."""
        status = parse_structured(STYLED_PAYLOAD)
        player = status.players[0]
        assert player.name == "Player839"
        assert player.nickname == "<rainbow>test"
        assert player.uuid == UUID("66397f00-f974-3e3d-944b-5f58f7613e27")
        assert component_text(player.nickname_styled) == "#test"
        assert status.tps == (20.0, 19.98, 19.5, 20.0, 18.25)

    def test_tps_optional(self) -> None:
        """Test that a missing tps key means no samples."""
        status = parse_structured('{"current_players":0,"max_players":5,"list":[]}')
        assert status.tps is None
        assert status.players == ()

    def test_idempotent(self) -> None:
        """Test that parsing the same payload twice gives equal values."""
        assert parse_structured(STYLED_PAYLOAD) == parse_structured(STYLED_PAYLOAD)

    def test_count_mismatch_not_validated(self) -> None:
        """Test that current > max is passed through untouched."""
        status = parse_structured('{"current_players":9,"max_players":8,"list":[]}')
        assert status.current_players == 9

    @pytest.mark.parametrize(
        "payload",
        [
            "not json",
            "[]",
            '{"max_players":8,"list":[]}',
            '{"current_players":-1,"max_players":8,"list":[]}',
            '{"current_players":true,"max_players":8,"list":[]}',
            '{"current_players":1,"max_players":8,"list":{}}',
            '{"current_players":1,"max_players":8,"list":[{"nickname":"x"}]}',
            '{"current_players":1,"max_players":8,"list":[{"name":"a","uuid":"zzz"}]}',
            '{"current_players":1,"max_players":8,"list":[],"tps":[20,20]}',
            '{"current_players":1,"max_players":8,"list":[],"tps":["a",1,1,1,1]}',
            pytest.param("[" * 100000 + "]" * 100000, id="deeply-nested"),
        ],
    )
    def test_malformed(self, payload: str) -> None:
        """Test that malformed payloads raise StatusParseError with the raw text."""
        with pytest.raises(StatusParseError) as excinfo:
            parse_structured(payload)
        assert excinfo.value.raw == payload
        assert "Deserialization error" in str(excinfo.value)


class TestParseUnstructured:
    """Tests for parse_unstructured."""

    def test_no_players(self) -> None:
        """Test the summary line with nobody online."""
        status = parse_unstructured("There are 0 of a max of 20 players online:")
        assert status == OnlineStatus(current_players=0, max_players=20)

    def test_names_sorted(self) -> None:
        """Test that names are sorted regardless of input order."""
        status = parse_unstructured("There are 3 of a max of 20 players online: zed, Alex, bob")
        assert [p.name for p in status.players] == ["Alex", "bob", "zed"]
        assert all(p.nickname is None and p.uuid is None for p in status.players)

    def test_surrounding_whitespace(self) -> None:
        """Test that trailing newlines are ignored."""
        status = parse_unstructured("There are 1 of a max of 5 players online: Steve\n")
        assert status.players == (PlayerEntry(name="Steve"),)

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "Unknown command",
            "There are 1 of a max of 20 players online: Steve, ",
            "There are many of a max of 20 players online:",
        ],
    )
    def test_no_match(self, text: str) -> None:
        """Test that other text is a parse error, not offline."""
        with pytest.raises(StatusParseError) as excinfo:
            parse_unstructured(text)
        assert "Regex error" in str(excinfo.value)


class TestComponentText:
    """Tests for component_text."""

    def test_plain_string(self) -> None:
        """Test a bare string component."""
        assert component_text("hi") == "hi"

    def test_list(self) -> None:
        """Test a list of components."""
        assert component_text(["a", {"text": "b"}]) == "ab"

    def test_none(self) -> None:
        """Test a missing component."""
        assert component_text(None) == ""


class TestStatusParserQuery:
    """Tests for StatusParser.query."""

    def test_command_selection(self) -> None:
        """Test that the grammar decides the query command."""
        assert StatusParser(structured=True).command == "list json"
        assert StatusParser(structured=False).command == "list"

    @pytest.mark.asyncio
    async def test_online(self, shared: SharedState, fake_session: FakeSession) -> None:
        """Test a successful query."""
        fake_session.responses["list"] = "There are 1 of a max of 20 players online: Steve"
        status = await StatusParser(structured=False).query(shared)
        assert isinstance(status, OnlineStatus)
        assert status.current_players == 1
        assert fake_session.commands == ["list"]

    @pytest.mark.asyncio
    async def test_transport_failure_is_offline(
        self, shared: SharedState, fake_session: FakeSession
    ) -> None:
        """Test that only a transport failure yields OFFLINE."""
        fake_session.responses["list json"] = RconConnectionError("refused")
        status = await StatusParser(structured=True).query(shared)
        assert status is OFFLINE
        assert isinstance(status, OfflineStatus)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("structured", [True, False])
    async def test_malformed_is_not_offline(
        self, shared: SharedState, fake_session: FakeSession, structured: bool
    ) -> None:
        """Test that garbage from a reachable server is an error."""
        fake_session.responses["list json"] = "Unknown command"
        fake_session.responses["list"] = "Unknown command"
        with pytest.raises(StatusParseError):
            await StatusParser(structured=structured).query(shared)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [RconAuthError("bad"), CommandTooLongError("long")])
    async def test_protocol_errors_are_not_offline(
        self, shared: SharedState, fake_session: FakeSession, error: Exception
    ) -> None:
        """Test that protocol rejections are errors, not offline."""
        fake_session.responses["list"] = error
        with pytest.raises(StatusQueryError) as excinfo:
            await StatusParser(structured=False).query(shared)
        assert not isinstance(excinfo.value, StatusParseError)
