"""VM lifecycle commands: disk images, launch, stop, kill, status, and ssh."""

from __future__ import annotations

import scriptconfig as scfg

from ..lifecycle import (
    clone_disk,
    create_disk,
    install_vm,
    kill_vm,
    ssh_vm,
    start_vm,
    stop_vm,
    vm_pid,
    vm_status,
)
from ..util import host_os
from ._common import _BaseCommand, _ExecCommand, _load_cfg


class CreateCLI(_ExecCommand):
    """Create a new qcow2 disk image for this VM."""

    size = scfg.Value('', position=1, type=str, help='Image size, e.g. 12G.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        create_disk(cfg.settings, str(args.size), dry_run=bool(args.dry_run))
        return 0


class CloneCLI(_ExecCommand):
    """Create this VM's disk as a copy-on-write overlay of an existing image."""

    src = scfg.Value(
        '', position=1, type=str, help='Path to the backing qcow2 image.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        clone_disk(cfg.settings, str(args.src), dry_run=bool(args.dry_run))
        return 0


class InstallCLI(_ExecCommand):
    """Start a profile booting from a cdrom iso, without auto reboot."""

    profile = scfg.Value('', position=1, type=str, help='Profile name.')
    iso = scfg.Value(
        '', position=2, type=str, help='Path to the installer iso.'
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        install_vm(
            cfg,
            str(args.profile),
            str(args.iso),
            host_os=host_os(),
            dry_run=bool(args.dry_run),
        )
        return 0


class StartCLI(_ExecCommand):
    """Launch a profile."""

    profile = scfg.Value('', position=1, type=str, help='Profile name.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        start_vm(
            cfg,
            str(args.profile),
            host_os=host_os(),
            dry_run=bool(args.dry_run),
        )
        return 0


class StopCLI(_ExecCommand):
    """Shut the guest down gracefully over ssh."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        stop_vm(cfg.settings, host_os=host_os(), dry_run=bool(args.dry_run))
        return 0


class KillCLI(_ExecCommand):
    """Kill the running qemu process."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        kill_vm(cfg.settings, host_os=host_os(), dry_run=bool(args.dry_run))
        return 0


class StatusCLI(_BaseCommand):
    """Show running status."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        print(vm_status(cfg.settings, host_os()))
        return 0


class PidCLI(_BaseCommand):
    """Show the PID of the running qemu process."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        pid = vm_pid(cfg.settings, host_os())
        if pid is not None:
            print(pid)
        return 0


class SSHCLI(_ExecCommand):
    """SSH into the guest."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        return ssh_vm(cfg.settings, dry_run=bool(args.dry_run))


class RunCLI(_ExecCommand):
    """Run a command in the guest over ssh."""

    cmd = scfg.Value('', type=str, help='Command line to run in the guest.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        remote = str(args.cmd or '').strip() or None
        return ssh_vm(cfg.settings, remote, dry_run=bool(args.dry_run))
