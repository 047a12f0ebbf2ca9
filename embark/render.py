"""Substitute settings into profile templates to produce qemu command lines."""

from __future__ import annotations

import re
import shlex
from typing import Sequence

from .config import Settings, substitute_refs

_CONTINUATION = re.compile(r'\\\r?\n')
# A shell word: quoted runs and unquoted non-space characters, quotes kept.
_WORD = re.compile(r'''(?:'[^']*'|"(?:\\.|[^"\\])*"|\\.|[^\s'"\\])+''')


def _expand(template: str, settings: Settings) -> str:
    text = substitute_refs(template, settings.as_dict())
    return _CONTINUATION.sub(' ', text)


def render(template: str, settings: Settings) -> str:
    """Expand ``${KEY}`` references and fold the template onto one line.

    References to names that are not settings are left as written. Runs of
    whitespace between words become one space; whitespace inside quotes is
    kept. No validation of the resulting qemu flags is performed.

    Example:
        >>> from embark.config import Settings
        >>> render('${QEMU_X86} \\\\\\n-m ${MEM}', Settings(mem='8G'))
        'qemu-system-x86_64 -m 8G'
    """
    return ' '.join(_WORD.findall(_expand(template, settings)))


def render_argv(
    template: str, settings: Settings, extra: Sequence[str] = ()
) -> list[str]:
    return [*shlex.split(_expand(template, settings)), *extra]
