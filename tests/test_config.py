import json

import pytest

import pm_config
from metric_types import InvalidConfiguration, MetricId


def test_missing_file_gives_defaults(tmp_path):
    config = pm_config.load_config(tmp_path / "absent.json")
    assert config == pm_config.DEFAULTS
    assert config is not pm_config.DEFAULTS


def test_malformed_json_gives_defaults(tmp_path, capsys):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    assert pm_config.load_config(path) == pm_config.DEFAULTS
    assert "malformed JSON" in capsys.readouterr().err


def test_bad_value_falls_back_for_that_key_only(tmp_path, capsys):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"cpu_threshold": "lots", "interval": 2, "interface": "eth1"}))
    config = pm_config.load_config(path)
    assert config["cpu_threshold"] == pm_config.DEFAULTS["cpu_threshold"]
    assert config["interval"] == 2.0
    assert config["interface"] == "eth1"
    assert "cpu_threshold" in capsys.readouterr().err


@pytest.mark.parametrize(
    "key, value",
    [
        ("interval", 0),
        ("interval", "soon"),
        ("history_len", 0),
        ("history_len", 40.5),
        ("history_len", 10 ** 400),
        ("interval", float("inf")),
        ("cpu_threshold", float("nan")),
        ("disk_threshold", "fast"),
        ("cpu_threshold", -1),
        ("cpu_threshold", True),
        ("cpu_scale", 0),
        ("top_n", "five"),
        ("interface", 3),
        ("log_file", ""),
        ("colour", "red"),
    ],
)
def test_validate_rejects(key, value):
    with pytest.raises(InvalidConfiguration) as info:
        pm_config.validate_config({key: value})
    assert info.value.key == key


def test_validate_accepts_numeric_strings():
    config = pm_config.validate_config({"cpu_threshold": "90", "history_len": "60"})
    assert config["cpu_threshold"] == 90.0
    assert config["history_len"] == 60


def test_infinity_in_json_falls_back_to_defaults(tmp_path, capsys):
    path = tmp_path / "config.json"
    path.write_text('{"history_len": Infinity, "interval": Infinity, "top_n": 7}')
    config = pm_config.load_config(path)
    assert config["history_len"] == pm_config.DEFAULTS["history_len"]
    assert config["interval"] == pm_config.DEFAULTS["interval"]
    assert config["top_n"] == 7
    assert "history_len" in capsys.readouterr().err


def test_save_reports_unwritable_location(tmp_path, capsys):
    blocker = tmp_path / "file"
    blocker.write_text("")
    assert pm_config.save_config(pm_config.DEFAULTS, blocker / "sub" / "config.json") is False
    assert "Error saving settings" in capsys.readouterr().err


def test_save_writes_known_keys(tmp_path):
    path = tmp_path / "sub" / "config.json"
    config = dict(pm_config.DEFAULTS, cpu_threshold=65.0, extra="dropped")
    assert pm_config.save_config(config, path) is True
    saved = json.loads(path.read_text())
    assert saved["cpu_threshold"] == 65.0
    assert "extra" not in saved
    assert pm_config.load_config(path)["cpu_threshold"] == 65.0


def test_threshold_limits():
    limits = pm_config.threshold_limits(dict(pm_config.DEFAULTS))
    assert limits == {MetricId.CPU_PERCENT: 80}

    limits = pm_config.threshold_limits(dict(pm_config.DEFAULTS, temp_threshold=85, net_threshold=1024))
    assert limits[MetricId.TEMPERATURE] == 85
    assert limits[MetricId.NET_RX] == limits[MetricId.NET_TX] == 1024
    assert MetricId.DISK_IO not in limits

    limits = pm_config.threshold_limits(dict(pm_config.DEFAULTS, disk_threshold=50 * 1024 * 1024))
    assert limits[MetricId.DISK_IO] == 50 * 1024 * 1024
