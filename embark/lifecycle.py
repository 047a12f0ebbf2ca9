"""VM lifecycle implementation: disk images, launch from profiles, stop, kill, ssh."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from .config import EmbarkConfig, Settings, get_profile
from .errors import (
    AlreadyExistsError,
    AlreadyRunningError,
    MissingArgumentError,
    NotRunningError,
)
from .process import find_pid, terminate_pid
from .render import render_argv
from .runtime import (
    SHUTDOWN_CMD,
    install_args,
    qemu_img_clone_cmd,
    qemu_img_create_cmd,
    ssh_cmd,
)
from .util import resolve_against, run_cmd, shell_join

log = logger


def disk_path(settings: Settings) -> Path:
    """Absolute path of the VM disk image (FILEPATH is relative to DIR)."""
    return resolve_against(settings.filepath, Path(settings.dir))


def create_disk(
    settings: Settings, size: str, *, dry_run: bool = False
) -> list[str]:
    size = (size or '').strip()
    if not size:
        raise MissingArgumentError('Size not given. Usage: embark create <size>')
    vm_disk = disk_path(settings)
    if vm_disk.exists():
        raise AlreadyExistsError(f'Filepath already exists: {vm_disk}')
    cmd = qemu_img_create_cmd(str(vm_disk), size)
    if dry_run:
        log.info('DRYRUN: {}', shell_join(cmd))
        return cmd
    run_cmd(cmd, check=True, capture=False)
    log.info('Created {} disk image {}', size, vm_disk)
    return cmd


def clone_disk(
    settings: Settings, src: str, *, dry_run: bool = False
) -> list[str]:
    src = (src or '').strip()
    if not src:
        raise MissingArgumentError(
            'Backing image not given. Usage: embark clone <path>'
        )
    vm_disk = disk_path(settings)
    if vm_disk.exists():
        log.warning('Overwriting existing disk image {}', vm_disk)
    cmd = qemu_img_clone_cmd(src, str(vm_disk))
    if dry_run:
        log.info('DRYRUN: {}', shell_join(cmd))
        return cmd
    run_cmd(cmd, check=True, capture=False)
    log.info('Cloned {} -> {}', src, vm_disk)
    return cmd


def vm_pid(settings: Settings, host_os: str | None = None) -> int | None:
    return find_pid(settings.name, host_os)


def ensure_not_running(settings: Settings, host_os: str | None = None) -> None:
    # Racy by nature: nothing stops another invocation from launching the
    # same VM between this check and our own launch.
    pid = vm_pid(settings, host_os)
    if pid is not None:
        raise AlreadyRunningError(f'Domain already running. PID: {pid}')


def launch_profile(
    cfg: EmbarkConfig,
    profile: str,
    *,
    iso: str | None = None,
    host_os: str | None = None,
    dry_run: bool = False,
) -> list[str]:
    """Render ``profile`` and run it, optionally booting from an install ISO.

    The process is run in the foreground; profiles that pass ``-daemonize``
    return as soon as qemu has forked.
    """
    ensure_not_running(cfg.settings, host_os)
    template = get_profile(cfg, profile)
    extra = install_args(iso) if iso else []
    cmd = render_argv(template, cfg.settings, extra)
    if dry_run:
        log.info('DRYRUN: {}', shell_join(cmd))
        return cmd
    log.info('Launching profile {} for {}', profile, cfg.settings.name)
    run_cmd(cmd, check=True, capture=False)
    return cmd


def start_vm(
    cfg: EmbarkConfig,
    profile: str,
    *,
    host_os: str | None = None,
    dry_run: bool = False,
) -> list[str]:
    if not profile:
        raise MissingArgumentError(
            'Profile not given. Usage: embark start <profile>'
        )
    return launch_profile(cfg, profile, host_os=host_os, dry_run=dry_run)


def install_vm(
    cfg: EmbarkConfig,
    profile: str,
    iso: str,
    *,
    host_os: str | None = None,
    dry_run: bool = False,
) -> list[str]:
    if not profile or not iso:
        raise MissingArgumentError(
            'Usage: embark install <profile> <iso>'
        )
    return launch_profile(
        cfg, profile, iso=iso, host_os=host_os, dry_run=dry_run
    )


def stop_vm(
    settings: Settings,
    *,
    host_os: str | None = None,
    dry_run: bool = False,
) -> list[str]:
    """Ask the guest to power off over SSH."""
    if vm_pid(settings, host_os) is None:
        raise NotRunningError('Not running')
    cmd = ssh_cmd(settings, SHUTDOWN_CMD)
    if dry_run:
        log.info('DRYRUN: {}', shell_join(cmd))
        return cmd
    run_cmd(cmd, check=False, capture=False)
    return cmd


def kill_vm(
    settings: Settings,
    *,
    host_os: str | None = None,
    dry_run: bool = False,
) -> int:
    pid = vm_pid(settings, host_os)
    if pid is None:
        raise NotRunningError('Not running')
    if dry_run:
        log.info('DRYRUN: kill {}', pid)
        return pid
    terminate_pid(pid)
    return pid


def vm_status(settings: Settings, host_os: str | None = None) -> str:
    pid = vm_pid(settings, host_os)
    if pid is None:
        return 'Not Running'
    return f'Running. PID: {pid}'


def ssh_vm(
    settings: Settings,
    remote: str | None = None,
    *,
    dry_run: bool = False,
) -> int:
    """Open an SSH session to the guest, or run ``remote`` there.

    Returns the ssh exit code.
    """
    cmd = ssh_cmd(settings, remote)
    if dry_run:
        log.info('DRYRUN: {}', shell_join(cmd))
        return 0
    return run_cmd(cmd, check=False, capture=False).code
