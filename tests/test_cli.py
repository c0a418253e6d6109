"""Tests for the objecthub CLI."""

from __future__ import annotations

import json

import pytest

from objecthub.cli import main

HELLO_SHA = "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"
HELLO_STORAGE_ID_OWNER_A = "064127259a2b4c0a821a63864ccf1a44681bfd0846adcfa5fb843ebaf564955f"


class TestStorageIdCommand:
    def test_prints_bare_id(self, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = main(["storage-id", "--owner", "ownerA", "--sha", HELLO_SHA])

        assert exit_code == 0
        assert capsys.readouterr().out.strip() == HELLO_STORAGE_ID_OWNER_A

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = main(["storage-id", "--owner", "ownerA", "--sha", HELLO_SHA.upper(), "--json"])

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output == {
            "ok": True,
            "owner": "ownerA",
            "sha256sum": HELLO_SHA,
            "storage-id": HELLO_STORAGE_ID_OWNER_A,
        }

    def test_invalid_sha_exits_2(self, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = main(["storage-id", "--owner", "ownerA", "--sha", "xyz"])

        assert exit_code == 2
        output = json.loads(capsys.readouterr().out)
        assert output["ok"] is False
        assert output["error"]["code"] == "INVALID_SHA"


class TestMigrateCommand:
    def test_without_database_exits_1(self, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = main(["migrate"])

        assert exit_code == 1
        output = json.loads(capsys.readouterr().out)
        assert output["error"]["code"] == "DATABASE_NOT_CONFIGURED"


class TestNoCommand:
    def test_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 0
        assert "storage-id" in capsys.readouterr().out


class TestMigrateStatus:
    def test_reports_revisions(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        from objecthub import cli
        from objecthub.persistence import migrate

        monkeypatch.setattr(cli, "get_admin_engine", lambda: object())
        monkeypatch.setattr(migrate, "get_current_revision", lambda engine: None)
        monkeypatch.setattr(migrate, "get_head_revision", lambda: "0001")

        exit_code = main(["migrate", "--status"])

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output == {"current": None, "head": "0001", "ok": True, "up_to_date": False}

    def test_without_database_exits_1(self, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = main(["migrate", "--status"])

        assert exit_code == 1
        assert json.loads(capsys.readouterr().out)["error"]["code"] == "DATABASE_NOT_CONFIGURED"
