"""Tests for the operational scripts (table creation and the scrape CLI)."""

import json
import sys
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, inspect

from scripts import manage_scrape
from scripts.init_db import init_db


class TestInitDb:

    def test_creates_every_table(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'fresh.db'}"

        init_db(url)
        init_db(url)

        engine = create_engine(url)
        try:
            tables = set(inspect(engine).get_table_names())
        finally:
            engine.dispose()
        assert {"students", "subjects", "marks", "scrape_batches", "scrape_chunks"} <= tables


class TestScrapeCLI:

    @pytest.fixture
    def run_cli(self, monkeypatch, settings, container):
        monkeypatch.setattr(manage_scrape, "get_settings", lambda: settings)
        monkeypatch.setattr(manage_scrape.ServiceContainer, "open", classmethod(lambda cls, s: container))
        monkeypatch.setattr(container, "close", lambda: None)

        def run(*argv):
            monkeypatch.setattr(sys, "argv", ["manage_scrape.py", *argv])
            manage_scrape.ScrapeCLI().run()

        return run

    def test_plan_for_profile(self, run_cli, capsys):
        run_cli("plan", "--profile", "xz", "--workers", "3")

        out = capsys.readouterr().out
        assert "Total Hall Tickets: 13797" in out
        assert "Chunk Size: 4599" in out
        assert "Worker 1: [0, 4599) 23XZ1A0001 .. 23XZ5A99A9" in out
        assert "B-format (01B1-99B9): 891 (e.g. 23XZ5A01B1)" in out

    def test_plan_for_configured_range(self, run_cli, capsys):
        run_cli("plan", "--workers", "2")

        out = capsys.readouterr().out
        assert "Total Hall Tickets: 10" in out
        assert "Worker 2: [5, 10) 160121733006 .. 160121733010" in out

    def test_local_start_then_status(self, run_cli, capsys, portal, page):
        portal.pages["160121733004"] = page("160121733004")

        run_cli("start", "--workers", "1", "--delay-ms", "0", "--local")
        out = capsys.readouterr().out
        assert "DONE. Status: COMPLETED" in out

        batch_id = out.split("Running batch ")[1].split()[0]
        run_cli("status", batch_id)
        progress = json.loads(capsys.readouterr().out)
        assert progress["stats"]["success"] == 1
        assert progress["stats"]["processed"] == 10
        assert "plan" not in progress

    def test_queued_start_reports_the_batch_when_the_broker_fails(self, run_cli, capsys, monkeypatch):
        monkeypatch.setattr("ingestion.tasks.dispatch_chunk", MagicMock(side_effect=ConnectionError("broker down")))

        run_cli("start", "--workers", "2")

        out = capsys.readouterr().out
        assert "only partly queued: broker down" in out
        batch_id = out.split("Batch ")[1].split()[0]
        run_cli("status", batch_id)
        progress = json.loads(capsys.readouterr().out)
        assert progress["status"] == "DISPATCH_FAILED"
        assert progress["chunks"] == {"FAILED": 2}

    def test_lookup(self, run_cli, capsys, portal, page):
        portal.pages["23XZ1A0501"] = page("23XZ1A0501", name="ADA LOVELACE")

        run_cli("lookup", "23xz1a0501")

        body = json.loads(capsys.readouterr().out)
        assert body["source"] == "live"
        assert body["data"]["name"] == "ADA LOVELACE"
