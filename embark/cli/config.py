"""Config file commands: template generation, settings, and profile queries."""

from __future__ import annotations

import scriptconfig as scfg

from ..config import (
    dump_settings,
    generate_template,
    get_profile,
    iter_profiles,
    list_profiles,
    set_variable,
)
from ..util import host_os
from ._common import _BaseCommand, _cfg_path, _load_cfg


class ConfigCLI(_BaseCommand):
    """Create the config file from the template for this host OS."""

    force = scfg.Value(
        False,
        isflag=True,
        help='Overwrite the config file if it already exists.',
    )

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        path = generate_template(
            _cfg_path(args.config), host_os(), force=bool(args.force)
        )
        print(f'Wrote config: {path}')
        return 0


class ListCLI(_BaseCommand):
    """List profiles."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        for name in list_profiles(_load_cfg(args.config)):
            print(name)
        return 0


class ShowCLI(_BaseCommand):
    """Print a profile by name, or every profile when no name is given."""

    profile = scfg.Value('', position=1, type=str, help='Profile name.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        cfg = _load_cfg(args.config)
        name = str(args.profile or '').strip()
        if name:
            print(get_profile(cfg, name))
            return 0
        for key, template in iter_profiles(cfg):
            print(f'{key}: {template}')
        return 0


class SetCLI(_BaseCommand):
    """Set a value in the local config file (no name: print all settings)."""

    variable = scfg.Value(
        '', position=1, type=str, help='Setting key, e.g. MEM.'
    )
    value = scfg.Value('', position=2, type=str, help='New value.')

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        name = str(args.variable or '').strip()
        if not name:
            for line in dump_settings(_load_cfg(args.config).settings):
                print(line)
            return 0
        set_variable(_cfg_path(args.config), name, str(args.value))
        return 0
