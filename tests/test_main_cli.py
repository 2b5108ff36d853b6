import json

import yaml

from main import _parse_args, main


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "127.0.0.1", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 8080


def test_openapi_subcommand_options() -> None:
    args = _parse_args(["openapi", "--format", "yaml", "--output", "contract.yaml"])
    assert args.command == "openapi"
    assert args.format == "yaml"
    assert args.output == "contract.yaml"


def test_openapi_command_writes_the_contract(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("BLOGAPI_CONFIG", raising=False)
    json_path = tmp_path / "openapi.json"
    yaml_path = tmp_path / "openapi.yaml"

    main(["openapi", "--output", str(json_path)])
    main(["openapi", "--format", "yaml", "--output", str(yaml_path)])

    document = json.loads(json_path.read_text(encoding="utf-8"))
    assert document["paths"]["/users/{id}"]["put"]["operationId"] == "updateUser"
    assert yaml.safe_load(yaml_path.read_text(encoding="utf-8")) == document


def test_init_db_creates_the_database(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.delenv("BLOGAPI_CONFIG", raising=False)
    db_path = tmp_path / "nested" / "blog.sqlite3"
    monkeypatch.setenv("BLOGAPI_DB_PATH", str(db_path))

    main(["init-db"])

    assert db_path.exists()
    assert "Database initialisation complete." in capsys.readouterr().out
