# vim: set filetype=python ts=4 sw=4
# -*- coding: utf-8 -*-
"""Contract shared by identity provider engines, and their registry.

Every identity provider implements `authenticate(login_details)`, which returns
the base64 encoded SAML assertion for the application at `login_details.url`.
Engines register themselves under a name with the `register` decorator.
"""
from collections import namedtuple
import importlib
import logging

from saml2aws.errors import UnknownProvider

logger = logging.getLogger(__name__)

LoginDetails = namedtuple("LoginDetails", ["username", "password", "url", "mfa_token"])
LoginDetails.__new__.__defaults__ = (None,)
LoginDetails.__doc__ = """Credentials and application URL of one login attempt."""

# Modules holding provider engines, imported on first lookup.
provider_modules = ("saml2aws.okta",)

_providers = {}


def register(name):
    """Register a Provider subclass under a name."""

    def decorator(cls):
        cls.name = name
        _providers[name.lower()] = cls
        return cls

    return decorator


def load_providers():
    """Import the modules holding provider engines."""
    for module in provider_modules:
        importlib.import_module(module)


def available_providers():
    """Return the names of the registered providers."""
    load_providers()
    return sorted(_providers.keys())


def get_provider(name, config, **kwargs):
    """Create the engine registered under a name.

    :param name: provider name, case insensitive
    :param config: Config object
    :param kwargs: passed on to the engine
    :return: Provider instance
    """
    load_providers()
    try:
        cls = _providers[str(name).lower()]
    except KeyError:
        logger.error(f"No identity provider named '{name}', choose from {available_providers()}")
        raise UnknownProvider(name)
    logger.debug(f"Using identity provider {cls.name}")
    return cls(config, **kwargs)


class Provider(object):
    """Base class for identity provider engines."""

    name = None

    def __init__(self, config):
        """Initialize with a Config object."""
        self.config = config

    def authenticate(self, login_details):
        """Log in and return the base64 encoded SAML assertion.

        :param login_details: LoginDetails tuple
        :return: SAML assertion string
        """
        raise NotImplementedError
