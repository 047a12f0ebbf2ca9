"""Runtime helpers for constructing qemu-img, install and SSH command arguments."""

from __future__ import annotations

from .config import Settings

QEMU_IMG = 'qemu-img'
DISK_FORMAT = 'qcow2'
SHUTDOWN_CMD = 'sudo shutdown -h now'


def qemu_img_create_cmd(filepath: str, size: str) -> list[str]:
    return [QEMU_IMG, 'create', '-f', DISK_FORMAT, filepath, size]


def qemu_img_clone_cmd(src: str, filepath: str) -> list[str]:
    # New image is a copy-on-write overlay backed by `src`.
    return [
        QEMU_IMG,
        'create',
        '-b',
        src,
        '-F',
        DISK_FORMAT,
        '-f',
        DISK_FORMAT,
        filepath,
    ]


def install_args(iso: str) -> list[str]:
    return ['-no-reboot', '-boot', 'order=d', '-cdrom', iso]


def ssh_target_args(settings: Settings) -> list[str]:
    """Guest address: bridged IP when set, else the forwarded localhost port."""
    if settings.ip:
        return [settings.ip]
    return ['-p', settings.port, 'localhost']


def ssh_cmd(settings: Settings, remote: str | None = None) -> list[str]:
    args = ['ssh']
    args.extend(ssh_target_args(settings))
    if remote:
        args.append(remote)
    return args
