from __future__ import annotations

from pathlib import Path

import scriptconfig as scfg
from loguru import logger

from ..config import EmbarkConfig, config_path, load

log = logger


class _BaseCommand(scfg.DataConfig):
    """Base options shared by all commands."""

    config = scfg.Value(
        None,
        help='Path to config TOML (default: $EMBARK_CONFIG, then .embark.toml).',
    )
    verbose = scfg.Value(
        0,
        short_alias=['v'],
        isflag='counter',
        help='Increase verbosity (-v, -vv).',
    )


class _ExecCommand(_BaseCommand):
    """Base options for commands that run an external tool."""

    dry_run = scfg.Value(
        False, isflag=True, help='Print actions without running.'
    )


def _cfg_path(p: str | None) -> Path:
    return config_path(p)


def _load_cfg(config_opt: str | None) -> EmbarkConfig:
    path = _cfg_path(config_opt)
    cfg = load(path)
    log.debug(
        'VM name={} config={} exists={}', cfg.settings.name, path, cfg.exists
    )
    return cfg


__all__ = [name for name in globals() if not name.startswith('__')]
