"""Per-directory config file: settings table, profile table, and template generation."""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path

from loguru import logger

from .errors import (
    AlreadyExistsError,
    ConfigError,
    ProfileNotFoundError,
    UnknownSettingError,
)

log = logger

CONFIG_ENV = 'EMBARK_CONFIG'
DEFAULT_CONFIG_NAME = '.embark.toml'


@dataclass(frozen=True)
class Settings:
    """Substitutable launch parameters.

    Each field maps to an upper-case key in the ``[settings]`` table of the
    config file and in profile templates (``qemu_x86`` <-> ``${QEMU_X86}``).
    Field order is the order used when dumping and resolving references.
    """

    qemu_x86: str = 'qemu-system-x86_64'
    qemu_arm: str = 'qemu-system-aarch64'
    dir: str = ''
    name: str = ''
    filepath: str = './${NAME}.qcow2'
    mac: str = '52:25:08:BE:00:01'
    br: str = 'br16'
    ip: str = ''
    port: str = '2220'
    vnc: str = '0'
    bios: str = 'QEMU_EFI.fd'
    cores: str = '2'
    mem: str = '4G'
    memslots: str = '4'
    maxmem: str = '16G'
    cxlmem: str = '256M'
    ig: str = '4K'
    memfiledir: str = '.'

    @classmethod
    def keys(cls) -> list[str]:
        return [f.name.upper() for f in fields(cls)]

    def as_dict(self) -> dict[str, str]:
        return {f.name.upper(): getattr(self, f.name) for f in fields(self)}


SETTING_KEYS = Settings.keys()


@dataclass(frozen=True)
class EmbarkConfig:
    settings: Settings
    profiles: dict[str, str] = field(default_factory=dict)
    path: Path | None = None

    @property
    def exists(self) -> bool:
        return self.path is not None and self.path.exists()


def config_path(explicit: str | os.PathLike | None = None) -> Path:
    """Resolve the config file path: explicit, then $EMBARK_CONFIG, then cwd."""
    raw = explicit or os.environ.get(CONFIG_ENV) or DEFAULT_CONFIG_NAME
    return Path(raw).expanduser().resolve()


_REF_PATTERN = re.compile(
    r'\$(?:\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)\}'
    r'|(?P<named>[A-Za-z_][A-Za-z0-9_]*))'
)


def substitute_refs(text: str, values: dict[str, str]) -> str:
    """Replace ``${KEY}`` and ``$KEY`` for the keys in ``values``.

    Any other ``$`` (unknown names, ``$$``, a trailing ``$``) is kept as
    written.
    """

    def _sub(match: re.Match) -> str:
        key = match.group('braced') or match.group('named')
        return values.get(key, match.group(0))

    return _REF_PATTERN.sub(_sub, text)


def _resolve_refs(values: dict[str, str]) -> dict[str, str]:
    # A value may reference any key that precedes it in field order.
    resolved: dict[str, str] = {}
    for key in SETTING_KEYS:
        resolved[key] = substitute_refs(values[key], resolved)
    return resolved


def default_settings(cwd: Path | None = None) -> Settings:
    return merge_settings({}, cwd=cwd)


def merge_settings(
    overrides: dict[str, str], *, cwd: Path | None = None
) -> Settings:
    """Build the immutable settings from built-in defaults plus overrides."""
    cwd = Path.cwd() if cwd is None else Path(cwd)
    values = Settings().as_dict()
    values['DIR'] = str(cwd)
    values.update(overrides)
    if 'NAME' not in overrides:
        values['NAME'] = Path(values['DIR']).name
    resolved = _resolve_refs(values)
    return Settings(**{k.lower(): v for k, v in resolved.items()})


def _parse_settings_table(body: object, path: Path) -> dict[str, str]:
    if not isinstance(body, dict):
        raise ConfigError(f'[settings] in {path} must be a table')
    overrides: dict[str, str] = {}
    for key, val in body.items():
        if key not in SETTING_KEYS:
            log.debug('Ignoring unknown setting {}={!r} in {}', key, val, path)
            continue
        if isinstance(val, (dict, list)):
            raise ConfigError(f'Setting {key} in {path} must be a scalar')
        overrides[key] = str(val)
    return overrides


def _parse_profiles_table(body: object, path: Path) -> dict[str, str]:
    if not isinstance(body, dict):
        raise ConfigError(f'[profiles] in {path} must be a table')
    profiles: dict[str, str] = {}
    for name, template in body.items():
        if not name or any(ch.isspace() for ch in name):
            log.warning('Skipping profile with invalid name {!r}', name)
            continue
        if not isinstance(template, str):
            log.warning('Skipping profile {} (template is not a string)', name)
            continue
        profiles[name] = template
    return profiles


def load(path: Path | None = None, *, cwd: Path | None = None) -> EmbarkConfig:
    """Load settings and profiles, falling back to defaults when absent."""
    fpath = path or config_path()
    if not fpath.exists():
        log.debug('No config at {}; using built-in defaults', fpath)
        return EmbarkConfig(settings=default_settings(cwd), path=fpath)
    try:
        raw = tomllib.loads(fpath.read_text(encoding='utf-8'))
    except tomllib.TOMLDecodeError as ex:
        raise ConfigError(f'Invalid config file {fpath}: {ex}') from ex
    overrides = _parse_settings_table(raw.get('settings', {}), fpath)
    profiles = _parse_profiles_table(raw.get('profiles', {}), fpath)
    log.debug(
        'Loaded {} setting override(s) and {} profile(s) from {}',
        len(overrides),
        len(profiles),
        fpath,
    )
    return EmbarkConfig(
        settings=merge_settings(overrides, cwd=cwd),
        profiles=profiles,
        path=fpath,
    )


def list_profiles(cfg: EmbarkConfig) -> list[str]:
    return sorted(cfg.profiles)


def get_profile(cfg: EmbarkConfig, name: str) -> str:
    try:
        return cfg.profiles[name]
    except KeyError:
        raise ProfileNotFoundError(
            f'No matching profile found: {name!r}'
        ) from None


def iter_profiles(cfg: EmbarkConfig) -> list[tuple[str, str]]:
    return [(name, cfg.profiles[name]) for name in list_profiles(cfg)]


def dump_settings(settings: Settings) -> list[str]:
    return [f'{k}={v}' for k, v in settings.as_dict().items()]


# Starter profiles written by `embark config`. Each template is stored as a
# TOML literal string so the shell-style line continuations stay verbatim.
_QCOW2_DISK = '-drive file=${FILEPATH},format=qcow2,index=0,media=disk,id=hd'
_BRIDGE_NET = (
    '-device virtio-net-pci,netdev=user0,mac=${MAC} '
    '-netdev bridge,id=user0,br=${BR}'
)
_USER_NET = '-net nic -net user,hostfwd=tcp::${PORT}-:22'

LINUX_PROFILES: dict[str, tuple[str, list[str]]] = {
    'vnc': (
        'Start VM as a daemon (no console or gui), display over VNC',
        [
            '${QEMU_X86}',
            '-name ${NAME}',
            _QCOW2_DISK,
            '-cpu host',
            '-machine type=q35,accel=kvm',
            '-smp ${CORES}',
            '-m ${MEM}',
            _BRIDGE_NET,
            '-daemonize',
            '-display vnc=:${VNC}',
        ],
    ),
    'console': (
        'Start VM with local console output',
        [
            '${QEMU_X86}',
            '-name ${NAME}',
            _QCOW2_DISK,
            '-cpu host',
            '-machine type=q35,accel=kvm',
            '-smp ${CORES}',
            '-m ${MEM}',
            _USER_NET,
            '-nographic',
        ],
    ),
    'gui': (
        'Start VM with the qemu viewer gui',
        [
            '${QEMU_X86}',
            '-name ${NAME}',
            _QCOW2_DISK,
            '-cpu host',
            '-machine type=q35,accel=kvm',
            '-smp ${CORES}',
            '-m ${MEM}',
            _BRIDGE_NET,
            '-daemonize',
            '-display gtk,gl=on',
        ],
    ),
    'net': (
        'Bridged networking with hot-pluggable memory slots',
        [
            '${QEMU_X86}',
            '-name ${NAME}',
            _QCOW2_DISK,
            '-cpu host',
            '-machine type=q35,accel=kvm',
            '-smp ${CORES}',
            '-m ${MEM},slots=${MEMSLOTS},maxmem=${MAXMEM}',
            _BRIDGE_NET,
            '-daemonize',
            '-display gtk,gl=on',
        ],
    ),
}

DARWIN_PROFILES: dict[str, tuple[str, list[str]]] = {
    'x86-console': (
        'Emulated x86 guest with console output',
        [
            '${QEMU_X86}',
            '-name ${NAME}',
            _QCOW2_DISK,
            '-machine type=q35',
            '-smp ${CORES}',
            '-m ${MEM}',
            _USER_NET,
            '-nographic',
        ],
    ),
    'x86-gui': (
        'Emulated x86 guest with cocoa display',
        [
            '${QEMU_X86}',
            '-name ${NAME}',
            _QCOW2_DISK,
            '-machine type=q35',
            '-smp ${CORES}',
            '-m ${MEM}',
            _USER_NET,
            '-display cocoa',
        ],
    ),
    'arm-console': (
        'Native arm guest (hvf) with console output',
        [
            '${QEMU_ARM}',
            '-name ${NAME}',
            _QCOW2_DISK,
            '-machine type=virt,accel=hvf',
            '-cpu host',
            '-smp ${CORES}',
            '-m ${MEM}',
            _USER_NET,
            '-nographic',
            '-bios ${BIOS}',
        ],
    ),
    'arm-gui': (
        'Native arm guest (hvf) with cocoa display and usb input',
        [
            '${QEMU_ARM}',
            '-name ${NAME}',
            _QCOW2_DISK,
            '-machine type=virt,accel=hvf',
            '-cpu host',
            '-smp ${CORES}',
            '-m ${MEM}',
            _USER_NET,
            '-device virtio-gpu-pci',
            '-display cocoa,show-cursor=on',
            '-device qemu-xhci',
            '-device usb-kbd',
            '-device usb-mouse',
            '-device usb-tablet',
            '-bios ${BIOS}',
        ],
    ),
}

HOST_PROFILES = {'Linux': LINUX_PROFILES, 'Darwin': DARWIN_PROFILES}


def starter_profiles(host_os: str) -> dict[str, str]:
    """Return the built-in profile templates for a host OS (may be empty)."""
    table = HOST_PROFILES.get(host_os, {})
    return {
        name: ' \\\n'.join(lines) + '\n'
        for name, (_, lines) in table.items()
    }


def _toml_escape(s: str) -> str:
    return s.replace('\\', '\\\\').replace('"', '\\"')


def render_config_text(host_os: str, *, cwd: Path | None = None) -> str:
    cwd = Path.cwd() if cwd is None else Path(cwd)
    raw_defaults = Settings().as_dict()
    raw_defaults['DIR'] = str(cwd)
    raw_defaults['NAME'] = cwd.name
    lines: list[str] = [
        '# embark configuration',
        '#',
        '# Uncomment a setting to override its built-in default, or use:',
        '#   embark set <KEY> <value>',
        '',
        '[settings]',
    ]
    for key, val in raw_defaults.items():
        lines.append(f'#{key} = "{_toml_escape(val)}"')
    lines.append('')
    lines.append('[profiles]')
    table = HOST_PROFILES.get(host_os, {})
    if not table:
        lines.append(f'# No starter profiles for host OS {host_os!r}')
    templates = starter_profiles(host_os)
    for name, (desc, _) in table.items():
        lines.append('')
        lines.append(f'# {desc}')
        lines.append(f"{name} = '''\n{templates[name]}'''")
    return '\n'.join(lines) + '\n'


def generate_template(
    path: Path,
    host_os: str,
    *,
    force: bool = False,
    cwd: Path | None = None,
) -> Path:
    """Write a fresh config file with commented defaults and starter profiles."""
    if path.exists() and not force:
        raise AlreadyExistsError(
            f'Config already exists: {path}. Use --force to overwrite it.'
        )
    if host_os not in HOST_PROFILES:
        log.warning(
            'Host OS {!r} has no starter profiles; writing settings only',
            host_os,
        )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_config_text(host_os, cwd=cwd), encoding='utf-8')
    log.info('Wrote config template for {} to {}', host_os, path)
    return path


_TABLE_HEADER = re.compile(r'^\s*\[([^\]]+)\]\s*(#.*)?$')


def set_variable(path: Path, name: str, value: str) -> bool:
    """Rewrite the first ``NAME = ...`` or ``#NAME = ...`` line in [settings].

    Comments, ordering and profiles are preserved. Returns False (and leaves
    the file untouched) when the key has no line in the file, active or
    commented out.
    """
    if name not in SETTING_KEYS:
        raise UnknownSettingError(
            f'Unknown setting: {name}. Known settings: {", ".join(SETTING_KEYS)}'
        )
    if not path.exists():
        raise ConfigError(
            f'Config not found: {path}. Run: embark config --config {path}'
        )
    pattern = re.compile(rf'^\s*#?\s*{re.escape(name)}\s*=')
    lines = path.read_text(encoding='utf-8').splitlines()
    section = ''
    for idx, line in enumerate(lines):
        header = _TABLE_HEADER.match(line)
        if header:
            section = header.group(1).strip()
            continue
        if section == 'settings' and pattern.match(line):
            lines[idx] = f'{name} = "{_toml_escape(str(value))}"'
            break
    else:
        log.warning(
            'Setting {} has no line in {}; nothing changed', name, path
        )
        return False
    text = '\n'.join(lines) + '\n'
    try:
        tomllib.loads(text)
    except tomllib.TOMLDecodeError as ex:
        raise ConfigError(
            f'Setting {name} would leave {path} invalid: {ex}'
        ) from ex
    path.write_text(text, encoding='utf-8')
    log.info('Set {}={} in {}', name, value, path)
    return True
