"""Tests for settings defaults, config loading, and template generation."""

from __future__ import annotations

from pathlib import Path

import pytest

from embark.config import (
    SETTING_KEYS,
    config_path,
    default_settings,
    dump_settings,
    generate_template,
    get_profile,
    iter_profiles,
    list_profiles,
    load,
    starter_profiles,
)
from embark.errors import AlreadyExistsError, ConfigError, ProfileNotFoundError


def _vm_dir(tmp_path: Path, name: str = 'testvm') -> Path:
    d = tmp_path / name
    d.mkdir()
    return d


def test_defaults_derive_name_and_filepath_from_dir(tmp_path: Path) -> None:
    d = _vm_dir(tmp_path)
    s = default_settings(d)
    assert s.dir == str(d)
    assert s.name == 'testvm'
    assert s.filepath == './testvm.qcow2'
    assert s.port == '2220'
    assert s.ip == ''


def test_load_missing_file_uses_defaults(tmp_path: Path) -> None:
    d = _vm_dir(tmp_path)
    cfg = load(d / '.embark.toml', cwd=d)
    assert cfg.exists is False
    assert cfg.profiles == {}
    assert cfg.settings == default_settings(d)


def test_load_overrides_and_ignores_unknown_keys(tmp_path: Path) -> None:
    d = _vm_dir(tmp_path)
    path = d / '.embark.toml'
    path.write_text(
        '[settings]\n'
        'MEM = "8G"\n'
        'CORES = 4\n'
        '#MAC = "00:00:00:00:00:00"\n'
        'NOT_A_SETTING = "x"\n'
        '\n'
        '[profiles]\n'
        "b = '''${QEMU_X86} -m ${MEM}'''\n"
        "a = '''${QEMU_ARM}'''\n",
        encoding='utf-8',
    )
    cfg = load(path, cwd=d)
    assert cfg.settings.mem == '8G'
    assert cfg.settings.cores == '4'
    assert cfg.settings.mac == '52:25:08:BE:00:01'
    assert list_profiles(cfg) == ['a', 'b']
    assert [name for name, _ in iter_profiles(cfg)] == ['a', 'b']


def test_name_override_moves_default_filepath(tmp_path: Path) -> None:
    d = _vm_dir(tmp_path)
    path = d / '.embark.toml'
    path.write_text('[settings]\nNAME = "other"\n', encoding='utf-8')
    s = load(path, cwd=d).settings
    assert s.name == 'other'
    assert s.filepath == './other.qcow2'


def test_invalid_toml_raises_config_error(tmp_path: Path) -> None:
    d = _vm_dir(tmp_path)
    path = d / '.embark.toml'
    path.write_text('[settings\nMEM = 8G\n', encoding='utf-8')
    with pytest.raises(ConfigError):
        load(path, cwd=d)


def test_config_path_env_override(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv('EMBARK_CONFIG', raising=False)
    root = tmp_path.resolve()
    assert config_path() == root / '.embark.toml'
    monkeypatch.setenv('EMBARK_CONFIG', str(tmp_path / 'custom.toml'))
    assert config_path() == root / 'custom.toml'
    assert config_path(str(tmp_path / 'x.toml')) == root / 'x.toml'


def test_generate_template_linux_then_list(tmp_path: Path) -> None:
    d = _vm_dir(tmp_path)
    path = d / '.embark.toml'
    generate_template(path, 'Linux', cwd=d)
    cfg = load(path, cwd=d)
    assert list_profiles(cfg) == ['console', 'gui', 'net', 'vnc']
    # Every setting is present but commented out, so defaults still apply.
    text = path.read_text(encoding='utf-8')
    for key in SETTING_KEYS:
        assert f'#{key} = ' in text
    assert cfg.settings == default_settings(d)


def test_generate_template_darwin_profiles(tmp_path: Path) -> None:
    d = _vm_dir(tmp_path)
    path = d / '.embark.toml'
    generate_template(path, 'Darwin', cwd=d)
    cfg = load(path, cwd=d)
    assert list_profiles(cfg) == [
        'arm-console',
        'arm-gui',
        'x86-console',
        'x86-gui',
    ]


def test_generate_template_refuses_overwrite(tmp_path: Path) -> None:
    d = _vm_dir(tmp_path)
    path = d / '.embark.toml'
    path.write_text('# hand edited\n', encoding='utf-8')
    with pytest.raises(AlreadyExistsError):
        generate_template(path, 'Linux', cwd=d)
    assert path.read_text(encoding='utf-8') == '# hand edited\n'
    generate_template(path, 'Linux', cwd=d, force=True)
    assert '[profiles]' in path.read_text(encoding='utf-8')


def test_show_returns_stored_template_exactly(tmp_path: Path) -> None:
    d = _vm_dir(tmp_path)
    path = d / '.embark.toml'
    generate_template(path, 'Linux', cwd=d)
    cfg = load(path, cwd=d)
    assert get_profile(cfg, 'console') == starter_profiles('Linux')['console']
    with pytest.raises(ProfileNotFoundError):
        get_profile(cfg, 'missingprofile')


def test_dump_settings_one_line_per_field(tmp_path: Path) -> None:
    lines = dump_settings(default_settings(_vm_dir(tmp_path)))
    assert len(lines) == len(SETTING_KEYS)
    assert [line.split('=', 1)[0] for line in lines] == SETTING_KEYS
    assert lines[0] == 'QEMU_X86=qemu-system-x86_64'
    assert 'NAME=testvm' in lines
