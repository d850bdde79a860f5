"""Tests for CLI/YAML configuration loading."""

import dataclasses
import logging
import os

import pytest

from cloudsqltail.config import Config, ConfigError, load_config, load_yaml_config, parse_duration

REQUIRED = ["-project", "my-project", "-subscription", "cloudsql-logs"]


class TestParseDuration:
    @pytest.mark.parametrize("value, expected", [
        ("5s", 5.0),
        ("250ms", 0.25),
        ("1m30s", 90.0),
        ("1h", 3600.0),
        ("1.5s", 1.5),
        ("100us", 0.0001),
        ("2", 2.0),
        ("0.5", 0.5),
        (3, 3.0),
        (0.25, 0.25),
        ("-1s", -1.0),
        ("0", 0.0),
    ])
    def test_valid(self, value, expected):
        assert parse_duration(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["", "s", "5 s", "5x", "fast", "1s2", "nan", "inf", True])
    def test_invalid(self, value):
        with pytest.raises(ConfigError):
            parse_duration(value)


class TestConfigDefaults:
    def test_defaults(self):
        cfg = Config()
        assert cfg.recv_routines == (os.cpu_count() or 1)
        assert cfg.flush_interval == 5.0
        assert cfg.health_port == 5000
        assert cfg.log_level == "INFO"
        assert cfg.log_dropped is False

    def test_frozen(self):
        cfg = Config()
        with pytest.raises(dataclasses.FrozenInstanceError):
            cfg.project = "other"


class TestRequiredFlags:
    def test_missing_project(self):
        with pytest.raises(ConfigError, match="-project"):
            load_config(["-subscription", "cloudsql-logs"])

    def test_missing_subscription(self):
        with pytest.raises(ConfigError, match="-subscription"):
            load_config(["-project", "my-project"])

    def test_empty_project(self):
        with pytest.raises(ConfigError, match="-project"):
            load_config(["-project", "", "-subscription", "cloudsql-logs"])

    def test_minimal(self):
        cfg = load_config(REQUIRED)
        assert cfg.project == "my-project"
        assert cfg.subscription == "cloudsql-logs"
        assert cfg.flush_interval == 5.0


class TestFlags:
    def test_single_dash_flags(self):
        cfg = load_config(REQUIRED + ["-recv-routines", "3", "-flush-interval", "2s"])
        assert cfg.recv_routines == 3
        assert cfg.flush_interval == 2.0

    def test_double_dash_flags(self):
        cfg = load_config([
            "--project", "p", "--subscription", "s",
            "--recv-routines", "7", "--flush-interval", "1m",
            "--health-port", "8081", "--log-level", "debug", "--log-dropped",
        ])
        assert cfg.project == "p"
        assert cfg.recv_routines == 7
        assert cfg.flush_interval == 60.0
        assert cfg.health_port == 8081
        assert cfg.log_level == "DEBUG"
        assert cfg.log_dropped is True

    def test_equals_syntax(self):
        cfg = load_config(["-project=p", "-subscription=s", "-flush-interval=750ms"])
        assert cfg.flush_interval == pytest.approx(0.75)

    def test_dash_leading_values(self):
        cfg = load_config(["-project", "-p", "--subscription", "--s"])
        assert cfg.project == "-p"
        assert cfg.subscription == "--s"

    def test_value_after_double_dash_terminator_not_joined(self):
        with pytest.raises(SystemExit):
            load_config(REQUIRED + ["--", "-flush-interval", "2s"])


class TestValidation:
    def test_zero_flush_interval(self):
        with pytest.raises(ConfigError, match="must be > 0"):
            load_config(REQUIRED + ["-flush-interval", "0s"])

    def test_negative_flush_interval(self):
        with pytest.raises(ConfigError):
            load_config(REQUIRED + ["-flush-interval", "-5s"])

    def test_bad_flush_interval(self):
        with pytest.raises(ConfigError):
            load_config(REQUIRED + ["-flush-interval", "soon"])

    def test_small_flush_interval_warns(self, caplog):
        caplog.set_level(logging.WARNING)
        cfg = load_config(REQUIRED + ["-flush-interval", "5ms"])
        assert cfg.flush_interval == pytest.approx(0.005)
        assert any("out-of-order" in r.getMessage() for r in caplog.records)

    def test_non_positive_routines_warns(self, caplog):
        caplog.set_level(logging.WARNING)
        cfg = load_config(REQUIRED + ["-recv-routines", "0"])
        assert cfg.recv_routines == 0
        assert any("receive routines" in r.getMessage() for r in caplog.records)

    def test_negative_routines_accepted(self):
        cfg = load_config(REQUIRED + ["-recv-routines", "-1"])
        assert cfg.recv_routines == -1

    def test_normal_values_do_not_warn(self, caplog):
        caplog.set_level(logging.WARNING)
        load_config(REQUIRED)
        assert caplog.records == []


class TestYamlConfig:
    def test_no_path(self):
        assert load_yaml_config(None) == {}

    def test_missing_file(self, tmp_path):
        assert load_yaml_config(str(tmp_path / "absent.yaml")) == {}

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            load_yaml_config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("project: [unclosed\n")
        with pytest.raises(ConfigError):
            load_yaml_config(str(path))

    def test_yaml_supplies_values(self, tmp_path):
        path = tmp_path / "cloudsqltail.yaml"
        path.write_text(
            "project: yaml-project\n"
            "subscription: yaml-sub\n"
            "recv_routines: 2\n"
            "flush_interval: 10s\n"
            "health_port: 9000\n"
            "log_dropped: true\n"
        )
        cfg = load_config(["--config", str(path)])
        assert cfg.project == "yaml-project"
        assert cfg.subscription == "yaml-sub"
        assert cfg.recv_routines == 2
        assert cfg.flush_interval == 10.0
        assert cfg.health_port == 9000
        assert cfg.log_dropped is True

    def test_cli_overrides_yaml(self, tmp_path):
        path = tmp_path / "cloudsqltail.yaml"
        path.write_text("project: yaml-project\nsubscription: yaml-sub\nflush_interval: 10\n")
        cfg = load_config(["--config", str(path), "-project", "cli-project", "-flush-interval", "3s"])
        assert cfg.project == "cli-project"
        assert cfg.subscription == "yaml-sub"
        assert cfg.flush_interval == 3.0

    def test_bad_yaml_type(self, tmp_path):
        path = tmp_path / "cloudsqltail.yaml"
        path.write_text("project: p\nsubscription: s\nrecv_routines: many\n")
        with pytest.raises(ConfigError):
            load_config(["--config", str(path)])

    def test_string_bool_rejected(self, tmp_path):
        path = tmp_path / "cloudsqltail.yaml"
        path.write_text('project: p\nsubscription: s\nlog_dropped: "false"\n')
        with pytest.raises(ConfigError, match="log_dropped"):
            load_config(["--config", str(path)])

    def test_yaml_bool_accepted(self, tmp_path):
        path = tmp_path / "cloudsqltail.yaml"
        path.write_text("project: p\nsubscription: s\nlog_dropped: true\n")
        assert load_config(["--config", str(path)]).log_dropped is True
