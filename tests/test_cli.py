"""End-to-end command tests through the modal CLI with external tools stubbed."""

from __future__ import annotations

from pathlib import Path

import pytest
from loguru import logger

from embark.cli import EmbarkModalCLI, main
from embark.cli.main import _count_verbose, _normalize_argv
from embark.config import SETTING_KEYS, load
from embark.errors import ProfileNotFoundError
from embark.util import CmdResult


@pytest.fixture(autouse=True)
def _drop_log_sinks():
    # main() attaches a sink to the captured stderr of the running test.
    yield
    logger.remove()


@pytest.fixture
def vm_dir(monkeypatch, tmp_path: Path) -> Path:
    d = tmp_path / 'testvm'
    d.mkdir()
    monkeypatch.chdir(d)
    monkeypatch.delenv('EMBARK_CONFIG', raising=False)
    monkeypatch.setattr('embark.cli.config.host_os', lambda: 'Linux')
    monkeypatch.setattr('embark.cli.vm.host_os', lambda: 'Linux')
    monkeypatch.setattr(
        'embark.lifecycle.find_pid', lambda name, host_os=None: None
    )
    return d


def _run(argv: list[str]) -> int:
    rc = EmbarkModalCLI.main(argv=argv, _noexit=True)
    return 0 if rc is None else int(rc)


def test_config_then_list_sorted(vm_dir: Path, capsys) -> None:
    assert _run(['config']) == 0
    assert (vm_dir / '.embark.toml').exists()
    capsys.readouterr()
    assert _run(['list']) == 0
    out = capsys.readouterr().out
    assert out.splitlines() == ['console', 'gui', 'net', 'vnc']


def test_set_without_name_dumps_settings(vm_dir: Path, capsys) -> None:
    assert _run(['set']) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == len(SETTING_KEYS)
    assert 'NAME=testvm' in lines
    assert 'FILEPATH=./testvm.qcow2' in lines


def test_set_then_dump_reflects_value(vm_dir: Path, capsys) -> None:
    _run(['config'])
    assert _run(['set', 'MEM', '8G']) == 0
    capsys.readouterr()
    _run(['set'])
    assert 'MEM=8G' in capsys.readouterr().out.splitlines()


@pytest.mark.parametrize('value', ['a,b', '02220', '1e3', 'x$$y'])
def test_set_keeps_value_verbatim(vm_dir: Path, value: str) -> None:
    _run(['config'])
    assert _run(['set', 'BIOS', value]) == 0
    assert load(vm_dir / '.embark.toml', cwd=vm_dir).settings.bios == value


def test_run_passes_command_verbatim(monkeypatch, vm_dir: Path) -> None:
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        return CmdResult(0, '', '')

    monkeypatch.setattr('embark.lifecycle.run_cmd', fake_run)
    with pytest.raises(SystemExit) as ex:
        main(['run', 'echo', 'a,b'])
    assert ex.value.code == 0
    assert calls == [['ssh', '-p', '2220', 'localhost', 'echo a,b']]


def test_install_iso_with_comma(monkeypatch, vm_dir: Path) -> None:
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        return CmdResult(0, '', '')

    monkeypatch.setattr('embark.lifecycle.run_cmd', fake_run)
    _run(['config'])
    assert _run(['install', 'console', 'my,iso.iso']) == 0
    assert calls[0][-2:] == ['-cdrom', 'my,iso.iso']


def test_show_one_and_all(vm_dir: Path, capsys) -> None:
    _run(['config'])
    capsys.readouterr()
    assert _run(['show', 'console']) == 0
    one = capsys.readouterr().out
    assert one.startswith('${QEMU_X86} \\\n-name ${NAME} \\\n')
    assert _run(['show']) == 0
    every = capsys.readouterr().out
    assert every.index('console: ') < every.index('vnc: ')
    with pytest.raises(ProfileNotFoundError):
        _run(['show', 'missingprofile'])


def test_status_and_pid_not_running(vm_dir: Path, capsys) -> None:
    assert _run(['status']) == 0
    assert capsys.readouterr().out.strip() == 'Not Running'
    assert _run(['pid']) == 0
    assert capsys.readouterr().out == ''


def test_start_dry_run_prints_nothing_runs_nothing(
    monkeypatch, vm_dir: Path
) -> None:
    monkeypatch.setattr(
        'embark.lifecycle.run_cmd',
        lambda cmd, **kwargs: pytest.fail('must not run in dry run'),
    )
    _run(['config'])
    assert _run(['start', 'console', '--dry_run']) == 0


def test_main_create_twice_exit_codes(
    monkeypatch, vm_dir: Path, capsys
) -> None:
    def fake_run(cmd, **kwargs):
        Path(cmd[4]).write_bytes(b'QFI')
        return CmdResult(0, '', '')

    monkeypatch.setattr('embark.lifecycle.run_cmd', fake_run)
    with pytest.raises(SystemExit) as ex:
        main(['create', '12G'])
    assert ex.value.code == 0
    assert (vm_dir / 'testvm.qcow2').exists()
    with pytest.raises(SystemExit) as ex:
        main(['create', '12G'])
    assert ex.value.code == 2
    assert 'already exists' in capsys.readouterr().err


def test_main_unknown_profile_exits_nonzero(vm_dir: Path, capsys) -> None:
    with pytest.raises(SystemExit) as ex:
        main(['start', 'missingprofile'])
    assert ex.value.code == 2
    assert 'ERROR: No matching profile found' in capsys.readouterr().err


def test_main_no_args_prints_usage(vm_dir: Path, capsys) -> None:
    with pytest.raises(SystemExit) as ex:
        main([])
    assert ex.value.code == 0
    out = capsys.readouterr().out
    assert 'embark <action> <options>' in out
    assert 'install <profile> <isopath>' in out
    assert 'status' in out


def test_normalize_argv() -> None:
    assert _normalize_argv([]) == ['help']
    assert _normalize_argv(['st']) == ['status']
    assert _normalize_argv(['run', 'ls', '-la', '/tmp']) == [
        'run',
        '--cmd=ls -la /tmp',
    ]
    assert _normalize_argv(['run', '-v', '--config', 'x.toml', 'uptime']) == [
        'run',
        '-v',
        '--config',
        'x.toml',
        '--cmd=uptime',
    ]
    assert _normalize_argv(['run']) == ['run']
    assert _normalize_argv(['start', 'vnc']) == ['start', 'vnc']


def test_count_verbose() -> None:
    assert _count_verbose(['status']) == 0
    assert _count_verbose(['status', '-vv']) == 2
    assert _count_verbose(['status', '--verbose', '-v']) == 2
    assert _count_verbose(['run', '--cmd=ls -v']) == 0
