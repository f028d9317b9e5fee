# vim: set filetype=python ts=4 sw=4
# -*- coding: utf-8 -*-
"""Configuration object shared by the CLI and the identity provider engines."""
from copy import deepcopy
import json
import logging
import sys

logger = logging.getLogger(__name__)


class Config(object):
    """Hold configuration sections as dictionaries.

    The `idp` section carries the settings consumed by a provider engine,
    and the `user` section the settings consumed by the command line tool.
    """

    _defaults = dict(
        user=dict(
            loglevel="INFO",
            log_output_file="",
            quiet=False,
            encoding="utf-8",
        ),
        idp=dict(
            provider="okta",
            url=None,
            username="",
            password="",
            mfa=None,
            mfa_response=None,
            mfa_attempts=3,
            disable_sessions=False,
            disable_remember_device=False,
            poll_interval=2,
            poll_timeout=120,
            http_timeout=30,
        ),
    )

    def __init__(self, **kwargs):
        """Initialize the object.

        Values from keyword arguments are applied on top of the defaults.
        :param kwargs: dict of dicts, one per section.
        """
        for section in self._defaults:
            setattr(self, section, deepcopy(self._defaults[section]))

        encoding = getattr(sys.stdin, "encoding", None)
        if encoding:
            self.user["encoding"] = encoding

        for section, values in kwargs.items():
            if section not in self._defaults:
                raise AttributeError(f"'{section}' is not a valid configuration section")
            if not isinstance(values, dict):
                raise KeyError(f"Section '{section}' must be a dictionary, not {type(values)}")
            for key, value in values.items():
                if key not in self._defaults[section]:
                    raise ValueError(f"'{key}' is not a valid key in section '{section}'")
                getattr(self, section)[key] = value

    def __repr__(self):
        """Return a JSON representation that can be used to recreate the object."""
        res = {section: getattr(self, section) for section in self._defaults}
        return json.dumps(res)

    def __eq__(self, other):
        """Compare two objects section by section."""
        if not isinstance(other, Config):
            return NotImplemented
        return all(
            getattr(self, section) == getattr(other, section) for section in self._defaults
        )

    def get_defaults(self):
        """Return a copy of the default values."""
        return deepcopy(self._defaults)

    def update(self, other):
        """Overlay the values of another object that differ from the defaults.

        :param other: Config object.
        """
        if not isinstance(other, Config):
            raise TypeError(f"Cannot update configuration with {type(other)}")
        for section in self._defaults:
            for key, value in getattr(other, section).items():
                if value != self._defaults[section][key]:
                    getattr(self, section)[key] = value


config = Config()
