"""End-to-end runs of the CLI against fake clients."""

import io
import json
from pathlib import Path

import pytest

from supadiff import cli


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SUPADIFF_LEFT_URL", "https://prod.supabase.co")
    monkeypatch.setenv("SUPADIFF_LEFT_KEY", "prod-key")
    monkeypatch.setenv("SUPADIFF_RIGHT_URL", "https://dev.supabase.co")
    monkeypatch.setenv("SUPADIFF_RIGHT_KEY", "dev-key")
    for field in ("LABEL",):
        monkeypatch.delenv(f"SUPADIFF_LEFT_{field}", raising=False)
        monkeypatch.delenv(f"SUPADIFF_RIGHT_{field}", raising=False)
    return tmp_path


def _install_clients(monkeypatch: pytest.MonkeyPatch, clients: dict) -> None:
    monkeypatch.setattr(cli, "connect", lambda target: clients[target.side])


def test_full_run_writes_all_artifacts(env: Path, monkeypatch, fake_client_cls, api_error_cls) -> None:
    prod = fake_client_cls(
        tables={
            "trips": [{"id": 1, "name": "Rome", "budget": 900}],
            "destinations": [{"id": 1}],
            "users": [{"id": "u1"}],
        }
    )
    dev = fake_client_cls(
        tables={"trips": [{"id": 1, "name": "Rome"}]},
        errors={"users": api_error_cls("permission denied for table users", "42501")},
    )
    _install_clients(monkeypatch, {"left": prod, "right": dev})
    out = io.StringIO()

    code = cli.main(["--out", "reports", "--include", "trips", "--include", "destinations", "--include", "users"], cli.ConsoleObserver(out))

    assert code == 0
    reports = env / "reports"
    names = sorted(p.name.split("-2")[0] for p in reports.iterdir())
    assert names == ["SUMMARY", "dev-schema", "production-schema", "schema-comparison", "sync-dev-to-prod"]

    comparison = json.loads(next(reports.glob("schema-comparison-*.json")).read_text(encoding="utf-8"))
    diffs = comparison["differences"]
    assert diffs["missing_tables_in_right"] == ["destinations", "users"]
    assert diffs["table_differences"]["trips"]["missing_columns_in_right"] == ["budget"]

    dev_dump = json.loads(next(reports.glob("dev-schema-*.json")).read_text(encoding="utf-8"))
    assert dev_dump["tables"]["users"]["exists"] is False
    assert dev_dump["tables"]["users"]["error_code"] == "42501"
    assert "dev-key" not in json.dumps(dev_dump)

    script = next(reports.glob("sync-dev-to-prod-*.sql")).read_text(encoding="utf-8")
    assert "-- ALTER TABLE trips ADD COLUMN budget TYPE_UNKNOWN; -- Manual review needed" in script

    text = out.getvalue()
    assert text.index("production") < text.index("Extracting schema for dev")
    assert "❌ Table users: permission denied for table users (42501)" in text
    assert "Missing tables in dev: destinations, users" in text


def test_identical_environments_skip_sync_script(env: Path, monkeypatch, fake_client_cls) -> None:
    bucket = {"id": "avatars", "name": "avatars", "public": True}
    tables = {"trips": [{"id": 1}]}
    _install_clients(
        monkeypatch,
        {"left": fake_client_cls(tables=tables, buckets=[bucket]), "right": fake_client_cls(tables=tables, buckets=[bucket])},
    )
    code = cli.main(["--out", "reports", "--include", "trips"], cli.ConsoleObserver(io.StringIO()))
    assert code == 0
    assert not list((env / "reports").glob("sync-dev-to-prod-*.sql"))


def test_config_file_and_no_storage(env: Path, monkeypatch, fake_client_cls) -> None:
    (env / "supadiff.yml").write_text(
        "out_dir: analysis\ntables: [trips]\nleft:\n  label: prod\nright:\n  label: stage\n",
        encoding="utf-8",
    )
    left, right = fake_client_cls(tables={"trips": []}), fake_client_cls(tables={"trips": []})
    _install_clients(monkeypatch, {"left": left, "right": right})
    code = cli.main(["--no-storage"], cli.ConsoleObserver(io.StringIO()))
    assert code == 0
    assert list((env / "analysis").glob("prod-schema-*.json"))
    assert list((env / "analysis").glob("stage-schema-*.json"))
    assert all(kind == "table" for kind, _, _ in left.calls)


def test_report_write_failure_exits_nonzero(env: Path, monkeypatch, fake_client_cls, capsys) -> None:
    (env / "blocked").write_text("x", encoding="utf-8")
    _install_clients(monkeypatch, {"left": fake_client_cls(), "right": fake_client_cls()})
    code = cli.main(["--out", "blocked", "--include", "trips"], cli.ConsoleObserver(io.StringIO()))
    assert code == 1
    assert "ERROR: could not write" in capsys.readouterr().err


def test_connection_fault_exits_nonzero(env: Path, monkeypatch, capsys) -> None:
    def refuse(_target):
        raise RuntimeError("Invalid URL")

    monkeypatch.setattr(cli, "connect", refuse)
    code = cli.main(["--out", "reports"], cli.ConsoleObserver(io.StringIO()))
    assert code == 1
    assert "Invalid URL" in capsys.readouterr().err


def test_missing_credentials_abort(env: Path, monkeypatch) -> None:
    monkeypatch.delenv("SUPADIFF_RIGHT_KEY")
    with pytest.raises(SystemExit, match="right.key"):
        cli.main(["--out", "reports"], cli.ConsoleObserver(io.StringIO()))


def test_explicit_missing_config_aborts(env: Path) -> None:
    with pytest.raises(SystemExit, match="config not found"):
        cli.main(["--config", "nope.yml"], cli.ConsoleObserver(io.StringIO()))


def test_colliding_labels_abort_before_connecting(env: Path, monkeypatch, fake_client_cls) -> None:
    monkeypatch.setenv("SUPADIFF_RIGHT_LABEL", "production")
    clients = {"left": fake_client_cls(), "right": fake_client_cls()}
    _install_clients(monkeypatch, clients)
    with pytest.raises(SystemExit, match="labels must differ"):
        cli.main(["--out", "reports"], cli.ConsoleObserver(io.StringIO()))
    assert clients["left"].calls == []
    assert not (env / "reports").exists()
