# vim: set filetype=python ts=4 sw=4
# -*- coding: utf-8 -*-
"""Helpers shared by the Okta login and factor verification code.

Okta answers authentication API errors with an HTTP 4xx status and a JSON body
carrying `errorCode` and `errorSummary`. The body is always decoded so that the
error code can be turned into the matching error kind.
"""
import json
import logging

from saml2aws.errors import InvalidCredentials
from saml2aws.errors import ProviderAPIError
from saml2aws.errors import ProviderHTTPError

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "E0000004"
INVALID_PASSCODE = "E0000068"

_status_dict = dict(
    E0000004="Authentication failed",
    E0000011="Invalid token provided",
    E0000047="API call exceeded rate limit due to too many requests",
    E0000068="Invalid Passcode/Answer",
    PASSWORD_EXPIRED="Your password has expired",
    LOCKED_OUT="Your account is locked out",
    MFA_ENROLL="You need to enroll a MFA factor before logging in",
)

json_headers = {"content-type": "application/json", "accept": "application/json"}


def api_error_code_parser(status=None):
    """Status code parsing.

    param status: Response status or error code
    return message: status message
    """
    if status and status in _status_dict.keys():
        message = f"Okta auth failed: {_status_dict[status]}"
    else:
        message = f"Okta auth failed: {status}. Please verify your settings and try again."
    logger.debug(f"Parsing error [{message}] ")
    return message


def raise_for_error_code(response):
    """Raise the error kind matching an Okta error payload, if there is one.

    :param response: decoded JSON body
    """
    code = response.get("errorCode", None)
    if not code:
        return
    summary = response.get("errorSummary", None)
    message = api_error_code_parser(code)
    if code == INVALID_CREDENTIALS:
        raise InvalidCredentials(code, summary, message)
    raise ProviderAPIError(code, summary, message)


def okta_api_post(client, url, payload, params=None, retries=1, allowed_errors=()):
    """Post a JSON payload to the Okta authentication API.

    :param client: HTTPClient of the login attempt
    :param url: API endpoint
    :param payload: dict sent as JSON
    :param params: optional query parameters
    :param retries: transient network errors tolerated
    :param allowed_errors: error codes returned to the caller instead of raised
    :return: decoded JSON body
    """
    response = client.post(
        url, json=payload, params=params, headers=json_headers, retries=retries, check_status=False
    )
    try:
        ret = response.json()
    except ValueError as err:
        logger.error(f"Received a non JSON response from {url}: {response.status_code}")
        raise ProviderHTTPError(url, response.status_code) from err

    if not isinstance(ret, dict):
        raise ProviderHTTPError(url, response.status_code, f"Unexpected response from {url}")

    logger.debug(f"Okta response from {url}: {json.dumps(ret)}")
    if ret.get("errorCode", None) in allowed_errors:
        return ret
    raise_for_error_code(ret)
    if not response.ok:
        raise ProviderHTTPError(url, response.status_code)
    return ret


def get_state_token(response, default=None):
    """Return the state token of a response, or a default value."""
    return response.get("stateToken", None) or default


def get_next_url(response, default=None):
    """Return the `next` link of a response, or a default value."""
    links = response.get("_links") or {}
    return (links.get("next") or {}).get("href", None) or default
