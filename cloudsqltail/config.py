"""Configuration loading from CLI flags and an optional YAML file."""

import argparse
import logging
import math
import os
import re
import sys
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")


class ConfigError(Exception):
    """Invalid or missing configuration; the process cannot start."""


@dataclass(frozen=True)
class Config:
    project: str = ""
    subscription: str = ""
    recv_routines: int = os.cpu_count() or 1
    flush_interval: float = 5.0
    health_host: str = "0.0.0.0"
    health_port: int = 5000
    log_level: str = "INFO"
    log_dropped: bool = False


def parse_duration(value) -> float:
    """Parse a Go-style duration ("5s", "250ms", "1m30s") into seconds.

    Bare numbers are taken as seconds.
    """
    if isinstance(value, bool):
        raise ConfigError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
        if not math.isfinite(seconds):
            raise ConfigError(f"invalid duration: {value!r}")
        return seconds

    text = str(value).strip()
    if not text:
        raise ConfigError("invalid duration: empty string")

    if _NUMBER_RE.match(text):
        return float(text)

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    pos = 0
    total = 0.0
    while pos < len(text):
        m = _DURATION_PART_RE.match(text, pos)
        if m is None:
            raise ConfigError(f"invalid duration: {value!r}")
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()

    if pos == 0:
        raise ConfigError(f"invalid duration: {value!r}")
    return sign * total


def load_yaml_config(path: str | None) -> dict:
    """Load flag defaults from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"could not parse config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cloudsqltail",
        description="Tail Cloud SQL logs from a Pub/Sub subscription to stdout",
        allow_abbrev=False,
    )
    parser.add_argument("-project", "--project", default=None, help="GCP project ID")
    parser.add_argument("-subscription", "--subscription", default=None,
                        help="Pub/Sub subscription name")
    parser.add_argument(
        "-recv-routines", "--recv-routines", dest="recv_routines", type=int, default=None,
        help="Number of workers receiving from the subscription (default: CPU count)",
    )
    parser.add_argument(
        "-flush-interval", "--flush-interval", dest="flush_interval", default=None,
        help="Time between flushes of buffered messages to stdout (default: 5s)",
    )
    parser.add_argument("--health-port", type=int, default=None,
                        help="Port for the liveness endpoint (default: 5000)")
    parser.add_argument("--log-level", default=None, type=str.upper, choices=LOG_LEVELS,
                        help="Logging verbosity (default: INFO)")
    parser.add_argument("--log-dropped", action="store_true", default=None,
                        help="Log a warning for every payload that cannot be decoded")
    parser.add_argument("--config", default=None, help="Path to YAML file with flag defaults")
    return parser


# Flags that take a value. Like Go's flag package, the token after one of these
# is always its value, even when it starts with "-".
_VALUE_FLAGS = frozenset([
    "-project", "--project", "-subscription", "--subscription",
    "-recv-routines", "--recv-routines", "-flush-interval", "--flush-interval",
    "--health-port", "--log-level", "--config",
])


def _join_flag_values(argv: list[str]) -> list[str]:
    """Rewrite ``-flag value`` pairs as ``-flag=value`` so argparse accepts
    values such as ``-5s``."""
    joined = []
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg == "--":
            joined.extend(argv[i:])
            break
        if arg in _VALUE_FLAGS and i + 1 < len(argv):
            joined.append(f"{arg}={argv[i + 1]}")
            i += 2
            continue
        joined.append(arg)
        i += 1
    return joined


def _pick(cli_value, yaml_data: dict, key: str, default):
    if cli_value is not None:
        return cli_value
    return yaml_data.get(key, default)


def _as_int(value, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def _as_bool(value, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{name} must be true or false, got {value!r}")
    return value


def load_config(argv: list[str] | None = None) -> Config:
    """Build Config from defaults <- YAML file <- CLI flags (highest priority).

    Raises ConfigError for missing identifiers or an unusable flush interval.
    Non-fatal problems are logged as warnings.
    """
    if argv is None:
        argv = sys.argv[1:]
    args = build_cli_parser().parse_args(_join_flag_values(argv))
    yaml_data = load_yaml_config(args.config)

    project = str(_pick(args.project, yaml_data, "project", "") or "")
    subscription = str(_pick(args.subscription, yaml_data, "subscription", "") or "")
    if not project:
        raise ConfigError("must provide -project")
    if not subscription:
        raise ConfigError("must provide -subscription")

    recv_routines = _as_int(_pick(args.recv_routines, yaml_data, "recv_routines", Config.recv_routines),
                            "recv_routines")
    if recv_routines < 1:
        logger.warning(
            'Cannot have "%d" receive routines. Using the Pub/Sub client default!', recv_routines,
        )

    flush_interval = parse_duration(_pick(args.flush_interval, yaml_data, "flush_interval",
                                          Config.flush_interval))
    if flush_interval <= 0:
        raise ConfigError(f"flush interval '{flush_interval}s' must be > 0")
    if flush_interval < 1:
        logger.warning(
            "Using a small flush interval (%.3fs) may result in more out-of-order output. "
            'Are you sure you didn\'t mean "%gs"?', flush_interval, flush_interval * 1000,
        )

    log_level = str(_pick(args.log_level, yaml_data, "log_level", Config.log_level)).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

    return Config(
        project=project,
        subscription=subscription,
        recv_routines=recv_routines,
        flush_interval=flush_interval,
        health_host=str(yaml_data.get("health_host", Config.health_host)),
        health_port=_as_int(_pick(args.health_port, yaml_data, "health_port", Config.health_port),
                            "health_port"),
        log_level=log_level,
        log_dropped=_as_bool(_pick(args.log_dropped, yaml_data, "log_dropped", Config.log_dropped),
                            "log_dropped"),
    )
