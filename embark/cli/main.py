"""Top-level modal CLI wiring, argv normalization, and logging setup."""

from __future__ import annotations

import os
import sys

import scriptconfig as scfg
from loguru import logger

from ._common import log
from .config import ConfigCLI, ListCLI, SetCLI, ShowCLI
from .help import HelpCLI
from .vm import (
    CloneCLI,
    CreateCLI,
    InstallCLI,
    KillCLI,
    PidCLI,
    RunCLI,
    SSHCLI,
    StartCLI,
    StatusCLI,
    StopCLI,
)


class EmbarkModalCLI(scfg.ModalCLI):
    """Command line tool to launch qemu images from named profiles."""

    config = ConfigCLI
    create = CreateCLI
    clone = CloneCLI
    install = InstallCLI
    start = StartCLI
    stop = StopCLI
    kill = KillCLI
    status = StatusCLI
    pid = PidCLI
    ssh = SSHCLI
    run = RunCLI
    list = ListCLI
    show = ShowCLI
    set = SetCLI
    help = HelpCLI


def main(argv: list[str] | None = None) -> None:
    if argv is None:
        argv = sys.argv[1:]
    argv = _normalize_argv(argv)
    _setup_logging(_count_verbose(argv))

    try:
        rc = EmbarkModalCLI.main(argv=argv, _noexit=True)
    except Exception as ex:
        print(f'ERROR: {ex}', file=sys.stderr)
        log.error('Unhandled embark error: {}', ex)
        sys.exit(2)

    if any(flag in argv for flag in ('-h', '--help')):
        sys.exit(0)
    if isinstance(rc, int):
        sys.exit(rc)
    sys.exit(0)


def _setup_logging(args_verbose: int, default_verbosity: int = 1) -> None:
    logger.remove()
    effective_verbosity = args_verbose if args_verbose > 0 else default_verbosity
    level = 'WARNING'
    if effective_verbosity == 1:
        level = 'INFO'
    elif effective_verbosity >= 2:
        level = 'DEBUG'
    colorize = sys.stderr.isatty() and os.getenv('NO_COLOR') is None
    logger.add(
        sys.stderr,
        level=level,
        colorize=colorize,
        format='<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>',
    )
    log.debug(
        'Logging configured at {} (effective_verbosity={}, colorize={})',
        level,
        effective_verbosity,
        colorize,
    )


_RUN_OPTIONS = {'--dry_run', '--dry-run', '--verbose'}


def _normalize_argv(argv: list[str]) -> list[str]:
    """Map the shell-style command line onto scriptconfig command names."""
    if not argv:
        return ['help']
    if argv[0] == 'st':
        return ['status', *argv[1:]]
    if argv[0] == 'run':
        # Leading embark options are kept; everything after is the remote command.
        opts: list[str] = []
        rest = list(argv[1:])
        while rest:
            item = rest[0]
            if item in _RUN_OPTIONS or _is_verbose_short(item):
                opts.append(rest.pop(0))
            elif item == '--config' and len(rest) >= 2:
                opts.extend(rest[:2])
                del rest[:2]
            elif item.startswith('--config='):
                opts.append(rest.pop(0))
            else:
                break
        if rest:
            opts.append('--cmd=' + ' '.join(rest))
        return ['run', *opts]
    return argv


def _is_verbose_short(item: str) -> bool:
    short = item[1:] if item.startswith('-') and not item.startswith('--') else ''
    return bool(short) and set(short) <= {'v'}


def _count_verbose(argv: list[str]) -> int:
    count = 0
    for item in argv:
        if item == '--verbose':
            count += 1
        elif _is_verbose_short(item):
            count += len(item) - 1
    return count
