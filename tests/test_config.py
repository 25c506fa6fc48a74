import json
import logging
from pathlib import Path

import pytest

from uploads import main as main_module
from uploads.config import Settings, parse_args
from uploads.errors import ConfigError
from uploads.logger_config import StructuredFormatter, structured_log
from uploads.repository.file_repository import FileRepository


def write_config(tmp_path, data):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))
    return path


def test_defaults_for_missing_keys(tmp_path):
    path = write_config(tmp_path, {
        "api_key": "k",
        "ui_username": "admin",
        "ui_password_hash": "5ebe2294ecd0e0f08eab7690d2a6ee69",
    })

    settings = Settings.load(path)
    assert settings.api_key == "k"
    assert settings.data_dir == Path("data")
    assert settings.db_path == Path("uploads.db")
    assert settings.port == 8080
    assert settings.server_addr == "0.0.0.0:8080"


def test_explicit_values(tmp_path):
    path = write_config(tmp_path, {
        "api_key": "k",
        "data_dir": "/srv/files",
        "db_path": "/srv/index.db",
        "port": 9000,
    })

    settings = Settings.load(path)
    assert settings.data_dir == Path("/srv/files")
    assert settings.db_path == Path("/srv/index.db")
    assert settings.port == 9000


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigError):
        Settings.load(tmp_path / "nope.json")


def test_malformed_config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    with pytest.raises(ConfigError):
        Settings.load(path)

    path.write_text("[1, 2]")
    with pytest.raises(ConfigError):
        Settings.load(path)


def test_parse_args():
    args = parse_args(["--config", "other.json", "--port", "9001"])
    assert args.config == "other.json"
    assert args.port == 9001
    assert not args.sweep

    assert parse_args([]).config == "configs/config.json"


def test_sweep_command(tmp_path):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "kept.txt").write_bytes(b"kept")
    db_path = tmp_path / "uploads.db"

    repo = FileRepository(db_path)
    repo.create_table()
    repo.insert_file("kept.txt", "kept.txt", 4, "127.0.0.1:1")
    repo.insert_file("gone.txt", "gone.txt", 4, "127.0.0.1:1")
    repo.close()

    path = write_config(tmp_path, {
        "api_key": "k",
        "data_dir": str(data_dir),
        "temp_dir": str(tmp_path / "temp"),
        "db_path": str(db_path),
        "log_dir": str(tmp_path / "logs"),
    })
    main_module.main(["--config", str(path), "--sweep"])

    repo = FileRepository(db_path)
    assert [r.stored_name for r in repo.get_all_files()] == ["kept.txt"]
    repo.close()


def test_bad_config_exits(tmp_path):
    with pytest.raises(SystemExit):
        main_module.main(["--config", str(tmp_path / "missing.json")])


def test_structured_formatter_merges_fields():
    record = logging.LogRecord(
        "uploads", logging.WARNING, __file__, 1,
        structured_log("orphan left", event="orphan_record", stored_name="1.txt"), None, None,
    )
    data = json.loads(StructuredFormatter().format(record))
    assert data["message"] == "orphan left"
    assert data["event"] == "orphan_record"
    assert data["stored_name"] == "1.txt"
    assert data["level"] == "WARNING"


def test_sweep_command_refuses_empty_data_dir(tmp_path):
    db_path = tmp_path / "uploads.db"
    repo = FileRepository(db_path)
    repo.create_table()
    repo.insert_file("a.txt", "1700000000.txt", 5, "127.0.0.1:1")
    repo.close()

    path = write_config(tmp_path, {
        "api_key": "k",
        "data_dir": str(tmp_path / "not_mounted"),
        "db_path": str(db_path),
        "log_dir": str(tmp_path / "logs"),
    })
    with pytest.raises(SystemExit):
        main_module.main(["--config", str(path), "--sweep"])

    repo = FileRepository(db_path)
    assert len(repo.get_all_files()) == 1
    repo.close()


def test_structured_formatter_uses_record_time():
    record = logging.LogRecord("uploads", logging.INFO, __file__, 1, "sweep done", None, None)
    record.created = 1700000000.25
    data = json.loads(StructuredFormatter().format(record))
    assert data["timestamp"] == "2023-11-14T22:13:20.250000+00:00"
