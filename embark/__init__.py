"""Launch qemu virtual machines from named, per-directory command profiles."""

__version__ = '0.1.0'
