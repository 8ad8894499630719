"""Tests for the command-line entry point (main.py)."""

import json

import pytest
import yaml

import main
from tiercache.config import reset_settings


@pytest.fixture(autouse=True)
def _clean_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def config_path(tmp_path):
    data = tmp_path / "data.csv"
    data.write_text("key,v1,v2\nuser:1,John,Doe\nuser:2,Jane,Smith\n", encoding="utf-8")
    cfg = tmp_path / "config.yaml"
    cfg.write_text(yaml.dump({
        "cache": {"layers": [{"name": "L1", "type": "memory", "ttl_seconds": 60}]},
        "loader": {"paths": [str(data)], "header": True},
        "logging": {"level": "WARNING"},
    }))
    return str(cfg)


class TestCli:
    def test_get_loads_from_file(self, config_path, capsys):
        main.main(["--config", config_path, "get", "user:1"])
        assert json.loads(capsys.readouterr().out) == ["John", "Doe"]

    def test_get_missing_prints_null(self, config_path, capsys):
        main.main(["--config", config_path, "get", "nobody"])
        assert capsys.readouterr().out.strip() == "null"

    def test_put(self, config_path, capsys):
        main.main(["--config", config_path, "put", "k", "a", "b"])
        assert "Stored k in 1 layer(s)" in capsys.readouterr().out

    def test_evict(self, config_path, capsys):
        main.main(["--config", config_path, "evict", "k"])
        assert "Evicted k" in capsys.readouterr().out

    def test_clear(self, config_path, capsys):
        main.main(["--config", config_path, "clear"])
        assert "Cleared all layers" in capsys.readouterr().out

    def test_warm(self, config_path, capsys):
        main.main(["--config", config_path, "warm", "user:1", "user:2", "ghost"])
        assert "Warmed 2/3 key(s)" in capsys.readouterr().out

    def test_stats(self, config_path, capsys):
        main.main(["--config", config_path, "stats"])
        assert json.loads(capsys.readouterr().out) == {"L1": 0}

    def test_stats_prometheus(self, config_path, capsys):
        main.main(["--config", config_path, "stats", "--prometheus"])
        assert "# TYPE tiercache_hits_total counter" in capsys.readouterr().out

    def test_metrics(self, config_path, capsys):
        main.main(["--config", config_path, "metrics"])
        out = capsys.readouterr().out
        assert "# TYPE tiercache_loads_total counter" in out
        assert "tiercache_loads_total 0" in out

    def test_shipped_config_works_from_any_directory(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        main.main(["get", "user:1"])
        assert json.loads(capsys.readouterr().out) == ["John", "Doe", "Active"]

    def test_non_numeric_ttl_exits(self, tmp_path, capsys):
        cfg = tmp_path / "bad.yaml"
        cfg.write_text(yaml.dump({"cache": {"layers": [{"name": "x", "ttl_seconds": "soon"}]}}))
        with pytest.raises(SystemExit) as info:
            main.main(["--config", str(cfg), "stats"])
        assert info.value.code == 2
        assert "invalid ttl_seconds" in capsys.readouterr().err

    def test_no_command_exits(self, capsys):
        with pytest.raises(SystemExit) as info:
            main.main([])
        assert info.value.code == 1

    def test_config_error_exits(self, tmp_path, capsys):
        cfg = tmp_path / "bad.yaml"
        cfg.write_text(yaml.dump({"cache": {"layers": [{"name": "x", "type": "memcached"}]}}))
        with pytest.raises(SystemExit) as info:
            main.main(["--config", str(cfg), "stats"])
        assert info.value.code == 2
        assert "Error:" in capsys.readouterr().err
