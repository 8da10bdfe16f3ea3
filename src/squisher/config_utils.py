import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

try:
    import yaml  # type: ignore
except ImportError as exc:
    raise ImportError(
        "PyYAML is required to read the squisher configuration. "
        "Install with `pip install pyyaml`."
    ) from exc

from .cache import default_cache_dir

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/squisher.yml")

_KNOWN_KEYS = {"toktx", "max_size", "cache_dir", "zstd_level", "astc_quality"}
_ASTC_QUALITIES = {"fastest", "fast", "medium", "thorough", "exhaustive"}


def _resolve_path(value: str, base: Path) -> Path:
    """Resolve a possibly relative path against a base directory."""
    path = Path(value).expanduser()
    return path if path.is_absolute() else base / path


@dataclass
class SquishSettings:
    toktx: str = "toktx"
    max_size: int = 4096
    cache_dir: Path = field(default_factory=default_cache_dir)
    zstd_level: int = 18
    astc_quality: str = "thorough"
    # per-run switches, normally set from the command line
    use_cache: bool = True
    supercompression: bool = True


def load_settings(config_path: Optional[Path] = None) -> SquishSettings:
    """
    Load settings from YAML, falling back to defaults.

    Args:
        config_path: Explicit config file. When None, config/squisher.yml is
            used if present and defaults otherwise.

    Returns:
        Populated SquishSettings.
    """
    explicit = config_path is not None
    path = Path(config_path) if explicit else DEFAULT_CONFIG_PATH
    if not path.exists():
        if explicit:
            raise FileNotFoundError(f"Config file not found: {path}")
        return SquishSettings()

    with open(path, "r") as f:
        config = yaml.safe_load(f) or {}

    cfg = config.get("squisher") if isinstance(config, dict) else None
    if cfg is None:
        raise ValueError(f"{path} is missing the 'squisher' section.")

    unknown = set(cfg) - _KNOWN_KEYS
    if unknown:
        logger.warning("Ignoring unknown keys in %s: %s", path, ", ".join(sorted(unknown)))

    settings = SquishSettings()
    base = path.resolve().parent

    settings.toktx = str(cfg.get("toktx", settings.toktx))
    settings.max_size = int(cfg.get("max_size", settings.max_size))
    if settings.max_size < 1:
        raise ValueError(f"max_size must be positive, got {settings.max_size}")

    settings.zstd_level = int(cfg.get("zstd_level", settings.zstd_level))
    if not 1 <= settings.zstd_level <= 22:
        raise ValueError(f"zstd_level must be in 1..22, got {settings.zstd_level}")

    settings.astc_quality = str(cfg.get("astc_quality", settings.astc_quality))
    if settings.astc_quality not in _ASTC_QUALITIES:
        raise ValueError(
            f"astc_quality must be one of {', '.join(sorted(_ASTC_QUALITIES))}, "
            f"got {settings.astc_quality!r}"
        )

    if cfg.get("cache_dir"):
        settings.cache_dir = _resolve_path(cfg["cache_dir"], base)

    return settings
