"""Locate the qemu process that belongs to a VM name, and signal it."""

from __future__ import annotations

import os
from typing import Sequence

import psutil
from loguru import logger

from .errors import EmbarkError, InvalidPidError, NotRunningError
from .util import host_os as _host_os
from .util import run_cmd

log = logger

QEMU_PREFIX = 'qemu-system'

# Listing command, PID column and first command column per host OS.
PS_LAYOUTS: dict[str, tuple[list[str], int, int]] = {
    'Linux': (['ps', 'aux'], 1, 10),
    'Darwin': (['ps', '-A'], 0, 3),
}


def _name_matches(value: str, vm_name: str) -> bool:
    # qemu accepts `-name foo`, `-name foo,debug-threads=on` and `-name guest=foo`
    head = value.split(',', 1)[0]
    return head in (vm_name, f'guest={vm_name}')


def is_vm_process(
    name: str | None, cmdline: Sequence[str], vm_name: str
) -> bool:
    """True if this looks like a qemu-system binary launched with ``-name vm_name``."""
    args = list(cmdline or [])
    exe = name or ''
    if not exe.startswith(QEMU_PREFIX) and args:
        exe = os.path.basename(args[0])
    if not exe.startswith(QEMU_PREFIX):
        return False
    for flag, val in zip(args, args[1:]):
        if flag in ('-name', '--name') and _name_matches(val, vm_name):
            return True
    return False


def ps_command(host_os: str) -> list[str]:
    try:
        return list(PS_LAYOUTS[host_os][0])
    except KeyError:
        raise EmbarkError(f'Unsupported host OS: {host_os}') from None


def parse_ps_listing(text: str, vm_name: str, host_os: str) -> int | None:
    """Find the lowest qemu PID for ``vm_name`` in raw process-listing output."""
    if host_os not in PS_LAYOUTS:
        raise EmbarkError(f'Unsupported host OS: {host_os}')
    _, pid_col, cmd_col = PS_LAYOUTS[host_os]
    pids: list[int] = []
    for line in text.splitlines():
        parts = line.split(None, cmd_col)
        if len(parts) <= cmd_col:
            continue
        if not is_vm_process(None, parts[cmd_col].split(), vm_name):
            continue
        raw_pid = parts[pid_col]
        if not raw_pid.isdigit():
            raise InvalidPidError(f'Invalid PID: {raw_pid}')
        pids.append(int(raw_pid))
    return min(pids) if pids else None


def find_pid_ps(vm_name: str, host_os: str) -> int | None:
    res = run_cmd(ps_command(host_os), check=True, capture=True)
    return parse_ps_listing(res.stdout, vm_name, host_os)


def find_pid(vm_name: str, host_os: str | None = None) -> int | None:
    """Return the PID of the running qemu process for ``vm_name``, if any.

    Processes are enumerated with psutil. When enumeration itself fails the
    platform ``ps`` listing is parsed instead. If several processes match,
    the lowest PID wins.
    """
    try:
        pids = sorted(
            proc.info['pid']
            for proc in psutil.process_iter(['pid', 'name', 'cmdline'])
            if is_vm_process(
                proc.info.get('name'), proc.info.get('cmdline') or [], vm_name
            )
        )
    except psutil.Error as ex:
        log.debug('psutil enumeration failed ({}); falling back to ps', ex)
        return find_pid_ps(vm_name, host_os or _host_os())
    if len(pids) > 1:
        log.warning(
            'Multiple qemu processes named {}: {}; using {}',
            vm_name,
            pids,
            pids[0],
        )
    return pids[0] if pids else None


def terminate_pid(pid: int) -> None:
    """Send SIGTERM to ``pid``."""
    try:
        psutil.Process(pid).terminate()
    except psutil.NoSuchProcess:
        raise NotRunningError(f'Not running (PID {pid} exited)') from None
    log.info('Sent SIGTERM to PID {}', pid)
