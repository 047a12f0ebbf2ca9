"""Usage rendering for the top-level help command."""

from __future__ import annotations

import scriptconfig as scfg

from ._common import _BaseCommand, _cfg_path

# Positional argument synopsis per subcommand.
USAGE_ARGS = {
    'clone': '<existing-file-path>',
    'create': '<size>',
    'install': '<profile> <isopath>',
    'run': '<cmd>',
    'set': '[<variable> [<value>]]',
    'show': '[<profile>]',
    'start': '<profile>',
}


class HelpCLI(_BaseCommand):
    """Print help menu."""

    @classmethod
    def main(cls, argv=True, **kwargs):
        args = cls.cli(argv=argv, data=kwargs)
        from .main import EmbarkModalCLI

        print(render_usage(EmbarkModalCLI, config=str(_cfg_path(args.config))))
        return 0


def _iter_modal_members(
    modal_cls: type[scfg.ModalCLI],
) -> list[tuple[str, type]]:
    members: list[tuple[str, type]] = []
    for name, val in modal_cls.__dict__.items():
        if name.startswith('_'):
            continue
        if not isinstance(val, type):
            continue
        if issubclass(val, scfg.ModalCLI) or issubclass(val, scfg.DataConfig):
            members.append((name, val))
    return members


def _short_help_line(cls: type) -> str:
    doc = (getattr(cls, '__doc__', '') or '').strip()
    if not doc:
        return ''
    return doc.splitlines()[0].strip()


def render_usage(
    modal_cls: type[scfg.ModalCLI], *, prog: str = 'embark', config: str = ''
) -> str:
    lines = [
        f'{prog} - {_short_help_line(modal_cls)}',
        '',
        f'{prog} <action> <options>',
        '',
        'Actions:',
        '',
    ]
    rows = []
    for name, subcls in sorted(_iter_modal_members(modal_cls)):
        synopsis = f'{name} {USAGE_ARGS.get(name, "")}'.strip()
        rows.append((synopsis, _short_help_line(subcls)))
    width = max(len(s) for s, _ in rows)
    for synopsis, desc in rows:
        lines.append(f'  {synopsis.ljust(width)}  {desc}')
    if config:
        lines.append('')
        lines.append(f'Config file: {config}')
    return '\n'.join(lines)
