import json

import pytest

from conftest import lookup_match
from cite_verifier import cli
from cite_verifier.citation_store import CitationStore
from cite_verifier.config import Settings
from cite_verifier.database import make_engine, make_session_factory

BROWN = "Brown v. Board of Education, 347 U.S. 483 (1954)"


@pytest.fixture
def cli_env(tmp_path, monkeypatch, fake_client):
    """Point the CLI at a scratch database and the scripted CourtListener."""
    monkeypatch.chdir(tmp_path)
    settings = Settings(_env_file=None, database_url=f"sqlite:///{tmp_path / 'citations.db'}")
    monkeypatch.setattr(cli, "get_settings", lambda: settings)

    class StubClient:
        token_store = None

        @classmethod
        def from_settings(cls, settings, token_store):
            cls.token_store = token_store
            return fake_client

    monkeypatch.setattr(cli, "CourtListenerClient", StubClient)
    return StubClient


def test_all_valid_exits_zero(cli_env, fake_client, capsys):
    fake_client.citation_lookups["347 U.S. 483"] = lookup_match(
        1, "Brown v. Board of Education", "/opinion/1/brown/"
    )

    exit_code = cli.main(["--text", BROWN, "--json", "--token", "abc"])

    assert exit_code == cli.EXIT_OK
    [record] = json.loads(capsys.readouterr().out)
    assert record["citation_status"] == "valid"
    assert record["cluster_id"] == "1"
    assert cli_env.token_store.get() == "abc"


def test_invalid_citation_exits_one(cli_env, capsys):
    exit_code = cli.main(["--text", "Marbury v. Madison"])

    assert exit_code == cli.EXIT_INVALID
    out = capsys.readouterr().out
    assert "1. Marbury v. Madison" in out
    assert "Citation: Invalid" in out


def test_requires_input(cli_env, capsys):
    assert cli.main([]) == cli.EXIT_ERROR
    assert "provide a file or --text" in capsys.readouterr().err


def test_unreadable_file(cli_env, tmp_path, capsys):
    path = tmp_path / "brief.rtf"
    path.write_text("{\\rtf1}")

    assert cli.main([str(path)]) == cli.EXIT_ERROR
    assert "Unsupported file type" in capsys.readouterr().err


def test_reads_and_cleans_file(cli_env, fake_client, tmp_path):
    path = tmp_path / "brief.txt"
    path.write_text(f"UNITED STATES DISTRICT COURT\n{BROWN}, and so on\n", encoding="utf-8")

    cli.main([str(path), "--json"])

    assert fake_client.called("validate_citation") == ["347 U.S. 483"]


def test_clear_replaces_stored_results(cli_env, tmp_path):
    cli.main(["--text", "Marbury v. Madison"])
    cli.main(["--text", "Doe v. Roe", "--clear"])

    engine = make_engine(f"sqlite:///{tmp_path / 'citations.db'}")
    db = make_session_factory(engine)()
    try:
        records = CitationStore(db).list()
        assert [r.original_text for r in records] == ["Doe v. Roe"]
    finally:
        db.close()
        engine.dispose()


@pytest.mark.parametrize("token", ["", "   "])
def test_blank_token_is_a_usage_error(cli_env, fake_client, capsys, token):
    assert cli.main(["--text", "Marbury v. Madison", "--token", token]) == cli.EXIT_ERROR
    assert "error: API token must not be blank" in capsys.readouterr().err
    assert fake_client.calls == []
