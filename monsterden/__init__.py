"""Monsterden package public interface.

Expose the :mod:`monsterden.config` module under ``config_module`` and make it
directly available as ``config`` for convenience. Configuration values can be
accessed as attributes on this module and the underlying dataclass instance is
available as ``config.settings``.
"""

from . import config as config_module

config = config_module

__all__ = ["config", "config_module"]
