# vim: set filetype=python ts=4 sw=4
# -*- coding: utf-8 -*-
"""saml2aws module initialization."""
__version__ = "1.0.0"
__title__ = "saml2aws"
__description__ = "Authenticate to a SAML identity provider and retrieve the assertion for AWS"
__long_description_content_type__ = "text/markdown"
__author__ = "saml2aws"
__license__ = "Apache 2.0"
