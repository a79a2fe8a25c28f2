from __future__ import annotations

import pytest


def test_capabilities_lists_allowed_codecs() -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from speech_gateway.main import app

    result = typer_testing.CliRunner().invoke(app, ["capabilities", "--codecs", "slin16"])

    assert result.exit_code == 0
    assert "slin16" in result.stdout
    assert "mock" in result.stdout


def test_capabilities_rejects_unknown_codecs() -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from speech_gateway.main import app

    result = typer_testing.CliRunner().invoke(app, ["capabilities", "--codecs", "g729"])

    assert result.exit_code == 1
    assert "No supported codec configured" in result.stdout


def test_serve_rejects_unknown_provider() -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from speech_gateway.main import app

    result = typer_testing.CliRunner().invoke(app, ["serve", "--provider", "azure"])

    assert result.exit_code == 2
