"""
Central configuration loader for tiercache.

Reads ``config/config.yaml`` and ``.env``, merges environment-variable
overrides (``TIERCACHE_`` prefix), and exposes a typed :class:`Settings`
singleton via :func:`get_settings`.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from tiercache.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Resolve project root (directory containing ``config/``)
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent          # tiercache/
_PROJECT_ROOT = _THIS_DIR.parent                     # repo root

LAYER_TYPES = ("memory", "disk", "redis")


def _project_path(*parts: str) -> Path:
    """Build an absolute path relative to the project root."""
    return _PROJECT_ROOT.joinpath(*parts)


# ---------------------------------------------------------------------------
# Nested settings dataclasses
# ---------------------------------------------------------------------------


@dataclass
class LayerSettings:
    name: str
    type: str = "memory"
    ttl_seconds: float = 0
    directory: Optional[str] = None


def _default_layers() -> List[LayerSettings]:
    return [
        LayerSettings(name="L1-Memory", type="memory", ttl_seconds=300),
    ]


@dataclass
class CacheSettings:
    layers: List[LayerSettings] = field(default_factory=_default_layers)
    lock_stripes: int = 16


@dataclass
class LoaderSettings:
    paths: List[str] = field(default_factory=list)
    delimiter: str = ","
    header: bool = False
    encoding: str = "utf-8"


@dataclass
class RedisSettings:
    url: str = "redis://localhost:6379/0"
    key_prefix: str = "tiercache"


@dataclass
class MetricsSettings:
    enabled: bool = True


@dataclass
class LoggingSettings:
    level: str = "INFO"


@dataclass
class Settings:
    """Top-level settings container."""
    cache: CacheSettings = field(default_factory=CacheSettings)
    loader: LoaderSettings = field(default_factory=LoaderSettings)
    redis: RedisSettings = field(default_factory=RedisSettings)
    metrics: MetricsSettings = field(default_factory=MetricsSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# YAML loader
# ---------------------------------------------------------------------------

def _load_yaml(path: Path) -> Dict[str, Any]:
    """Read and parse a YAML file.  Returns ``{}`` if the file is missing."""
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return data if isinstance(data, dict) else {}


def _parse_layers(raw_layers: Any) -> List[LayerSettings]:
    """Convert the YAML ``cache.layers`` list into :class:`LayerSettings`.

    Raises:
        ConfigurationError: On a malformed entry, an unknown layer type,
            or a duplicate layer name.
    """
    if not isinstance(raw_layers, list):
        raise ConfigurationError("cache.layers must be a list")

    layers: List[LayerSettings] = []
    seen = set()
    for idx, item in enumerate(raw_layers):
        if not isinstance(item, dict) or not item.get("name"):
            raise ConfigurationError(f"cache.layers[{idx}] must define a name")
        layer_type = str(item.get("type", "memory")).lower()
        if layer_type not in LAYER_TYPES:
            raise ConfigurationError(
                f"cache.layers[{idx}] has unknown type '{layer_type}'"
            )
        name = str(item["name"])
        if name in seen:
            raise ConfigurationError(f"Duplicate layer name '{name}'")
        seen.add(name)
        try:
            ttl_seconds = float(item.get("ttl_seconds", 0) or 0)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"cache.layers[{idx}] has invalid ttl_seconds "
                f"{item.get('ttl_seconds')!r}"
            ) from exc
        directory = item.get("directory")
        layers.append(
            LayerSettings(
                name=name,
                type=layer_type,
                ttl_seconds=ttl_seconds,
                directory=_resolve_path(str(directory)) if directory else None,
            )
        )
    return layers


def _resolve_path(path: str) -> str:
    """Anchor a relative path at the project root; absolute paths pass through."""
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = _project_path(str(p))
    return str(p)


def _apply_dict(target: object, data: Dict[str, Any]) -> None:
    """Apply *data* values onto a dataclass instance."""
    for key, value in data.items():
        if not hasattr(target, key):
            continue
        if isinstance(target, CacheSettings) and key == "layers":
            target.layers = _parse_layers(value)
        else:
            setattr(target, key, value)


# ---------------------------------------------------------------------------
# Env-var overrides  (TIERCACHE_SECTION_KEY  e.g. TIERCACHE_REDIS_URL)
# ---------------------------------------------------------------------------

_FLAT_SECTIONS = ["cache", "loader", "redis", "metrics", "logging"]

_TYPE_MAP = {
    int: int,
    float: float,
    bool: lambda v: v.lower() in ("1", "true", "yes"),
    str: str,
    list: lambda v: [p.strip() for p in v.split(",") if p.strip()],
}


def _apply_env_overrides(settings: Settings) -> None:
    """Override flat scalar fields via ``TIERCACHE_<SECTION>_<KEY>`` env vars.

    ``cache.layers`` is structured and can only be set from YAML.
    """
    for section_name in _FLAT_SECTIONS:
        section = getattr(settings, section_name, None)
        if section is None:
            continue
        prefix = f"TIERCACHE_{section_name.upper()}_"
        for key in list(vars(section)):
            if section_name == "cache" and key == "layers":
                continue
            env_key = prefix + key.upper()
            env_val = os.environ.get(env_key)
            if env_val is None:
                continue
            current = getattr(section, key)
            cast = _TYPE_MAP.get(type(current), str)
            try:
                setattr(section, key, cast(env_val))
                logger.debug("Env override applied: %s=%s", env_key, env_val)
            except (ValueError, TypeError):
                logger.warning("Invalid env override %s=%s", env_key, env_val)


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Optional[Settings] = None
_lock = threading.Lock()


def get_settings(
    *,
    yaml_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
    _force_reload: bool = False,
) -> Settings:
    """Return the application-wide :class:`Settings` singleton.

    On first call (or when ``_force_reload=True``) the function:

    1. Calls ``load_dotenv()`` to populate env vars from ``.env``.
    2. Reads ``config/config.yaml``.
    3. Applies ``TIERCACHE_*`` environment-variable overrides.
    4. Resolves relative ``loader.paths`` against the project root, so
       the CLI finds ``data/`` from any working directory.

    Args:
        yaml_path: Override the YAML config file path (testing).
        env_path: Override the ``.env`` file path (testing).
        _force_reload: Re-read everything even if already loaded.

    Returns:
        The global ``Settings`` instance.

    Raises:
        ConfigurationError: If the YAML layer list is invalid.
    """
    global _settings

    if _settings is not None and not _force_reload:
        return _settings

    with _lock:
        # Double-check after acquiring lock
        if _settings is not None and not _force_reload:
            return _settings

        # 1. Load .env
        dotenv_path = env_path or _project_path(".env")
        load_dotenv(dotenv_path, override=True)

        # 2. Read YAML
        config_path = yaml_path or _project_path("config", "config.yaml")
        raw = _load_yaml(config_path)

        # 3. Build Settings with defaults, then overlay YAML values
        settings = Settings()

        for section_name in _FLAT_SECTIONS:
            section_data = raw.get(section_name)
            if isinstance(section_data, dict):
                section_obj = getattr(settings, section_name)
                _apply_dict(section_obj, section_data)

        # 4. Apply TIERCACHE_* env-var overrides
        _apply_env_overrides(settings)

        # 5. Relative loader paths are relative to the project root
        if isinstance(settings.loader.paths, str):
            settings.loader.paths = [settings.loader.paths]
        settings.loader.paths = [_resolve_path(str(p)) for p in settings.loader.paths]

        _settings = settings
        logger.info(
            "Settings loaded from %s",
            config_path,
            extra={"layers": [layer.name for layer in settings.cache.layers]},
        )
        return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for testing)."""
    global _settings
    with _lock:
        _settings = None
