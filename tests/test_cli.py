from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from agenthaus.channels.pairing import PairingError
from agenthaus.cli.main import create_parser, main
from agenthaus.services import container


@pytest.fixture
def fake_platform(monkeypatch):
    platform = MagicMock()
    platform.pairing.get_or_create = AsyncMock()
    monkeypatch.setattr(container, "get_platform", lambda: platform)
    return platform


def test_parser_defaults():
    args = create_parser().parse_args(["serve"])

    assert args.host == "0.0.0.0"
    assert args.port == 8000
    assert args.reload is False


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage: agenthaus" in capsys.readouterr().out


def test_pairing_code_is_printed(fake_platform, capsys):
    fake_platform.pairing.get_or_create.return_value = SimpleNamespace(
        code="AF7X2K", is_new=True, expires_at=datetime(2026, 1, 2, 3, 4)
    )

    assert main(["pairing-code", "agent-1"]) == 0
    assert capsys.readouterr().out.strip() == "AF7X2K (new, expires 2026-01-02 03:04 UTC)"


def test_command_errors_exit_nonzero(fake_platform, capsys):
    fake_platform.pairing.get_or_create.side_effect = PairingError("Agent must be active to generate a pairing code")

    assert main(["pairing-code", "agent-1"]) == 1
    assert "Error: Agent must be active" in capsys.readouterr().err
