"""
Planner configuration

Settings come from a YAML file (planner.config.yaml at the repository root by
default) and can be overridden from the environment. Command-line flags in
year_tui.py take precedence over both.
"""

import os
import sys
from dataclasses import dataclass, fields
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

try:
	import yaml  # type: ignore
except ImportError:  # pragma: no cover
	print("Missing dependency: pyyaml. Install with: pip install pyyaml", file=sys.stderr)
	raise


CONFIG_DEFAULT_PATH = Path(__file__).resolve().parents[1] / "planner.config.yaml"
DEFAULT_SERVER_PATH = "gcal-mcp-server"


class ConfigError(Exception):
	pass


@dataclass
class PlannerConfig:
	server_path: str = DEFAULT_SERVER_PATH
	calendar_id: str = "primary"
	timezone: Optional[str] = None
	max_results: int = 2500
	fetch_padding_days: int = 31
	events_file: Optional[str] = None


# Environment variables checked for each setting, first non-empty wins
ENV_OVERRIDES: Dict[str, tuple] = {
	"server_path": ("PLANNER_SERVER_PATH",),
	"calendar_id": ("PLANNER_CALENDAR_ID", "GOOGLE_CALENDAR_ID"),
	"timezone": ("PLANNER_TIMEZONE",),
	"events_file": ("PLANNER_EVENTS_FILE",),
}


def pick_first_non_empty(values: Iterable[Optional[str]]) -> Optional[str]:
	for value in values:
		if not isinstance(value, str):
			continue
		trimmed = value.strip()
		if trimmed:
			return trimmed
	return None


def _read_yaml(path: Path) -> Dict:
	try:
		data = yaml.safe_load(path.read_text(encoding="utf-8"))
	except OSError as exc:
		raise ConfigError(f"Cannot read config {path}: {exc}") from exc
	except yaml.YAMLError as exc:
		raise ConfigError(f"Malformed config {path}: {exc}") from exc

	if data is None:
		return {}
	if not isinstance(data, dict):
		raise ConfigError(f"Config {path} must be a mapping, got {type(data).__name__}")
	return data


def _as_int(name: str, value) -> int:
	if isinstance(value, bool):
		raise ConfigError(f"'{name}' must be an integer, got {value!r}")
	try:
		number = int(value)
	except (TypeError, ValueError) as exc:
		raise ConfigError(f"'{name}' must be an integer, got {value!r}") from exc
	if number < 0:
		raise ConfigError(f"'{name}' cannot be negative, got {number}")
	return number


def load_config(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> PlannerConfig:
	"""Build the effective config from YAML plus environment overrides

	An explicit path must exist; the default path is optional.
	"""
	if environ is None:
		environ = os.environ

	data: Dict = {}
	if path is not None:
		path = Path(path)
		if not path.exists():
			raise ConfigError(f"Config not found: {path}")
		data = _read_yaml(path)
	elif CONFIG_DEFAULT_PATH.exists():
		data = _read_yaml(CONFIG_DEFAULT_PATH)

	known = {f.name for f in fields(PlannerConfig)}
	unknown = sorted(set(data) - known)
	if unknown:
		raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

	config = PlannerConfig()
	for name in ("server_path", "calendar_id", "timezone", "events_file"):
		value = pick_first_non_empty([data.get(name)])
		if value is not None:
			setattr(config, name, value)
	for name in ("max_results", "fetch_padding_days"):
		if data.get(name) is not None:
			setattr(config, name, _as_int(name, data[name]))

	for name, variables in ENV_OVERRIDES.items():
		value = pick_first_non_empty([environ.get(variable) for variable in variables])
		if value is not None:
			setattr(config, name, value)

	# TZ applies only when it names a zone key; POSIX rules stay with astimezone()
	if pick_first_non_empty([environ.get("PLANNER_TIMEZONE")]) is None:
		tz_key = zone_key_from_tz(environ.get("TZ"))
		if tz_key is not None:
			config.timezone = tz_key

	return config


def zone_key_from_tz(value: Optional[str]) -> Optional[str]:
	"""IANA zone key named by a TZ value such as ':America/New_York'

	Returns None for POSIX rule strings ('EST5EDT,M3.2.0,M11.1.0'), file
	paths and unknown names.
	"""
	value = pick_first_non_empty([value])
	if value is None:
		return None
	key = value[1:].strip() if value.startswith(":") else value
	if not key:
		return None
	try:
		ZoneInfo(key)
	except (ZoneInfoNotFoundError, ValueError, OSError):
		return None
	return key


def resolve_tzinfo(name: Optional[str]) -> Optional[tzinfo]:
	"""tzinfo for a zone name; None/'local' keep the observer's system zone"""
	if name is None or not name.strip() or name.strip().lower() == "local":
		return None
	try:
		return ZoneInfo(name.strip())
	except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
		raise ConfigError(f"Unknown time zone: {name}") from exc


def get_system_timezone() -> str:
	"""Get the system timezone from environment or detect from system"""
	# First check TZ environment variable
	tz = zone_key_from_tz(os.environ.get('TZ'))
	if tz:
		return tz

	# Zone name of the local tzinfo, when the platform exposes one
	local_tz = datetime.now().astimezone().tzinfo
	for attribute in ('key', 'zone'):
		name = getattr(local_tz, attribute, None)
		if isinstance(name, str) and name:
			return name

	# Fallback to UTC if we can't detect
	return 'UTC'
