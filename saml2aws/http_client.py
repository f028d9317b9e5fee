# vim: set filetype=python ts=4 sw=4
# -*- coding: utf-8 -*-
"""This module handles HTTP client operations."""

import logging
import platform
from urllib.parse import urlparse

import requests
from saml2aws import __title__
from saml2aws import __version__
from saml2aws.errors import ProviderConnectionError
from saml2aws.errors import ProviderHTTPError
from saml2aws.errors import SessionReuseError

logger = logging.getLogger(__name__)

DEVICE_TOKEN_COOKIE = "DT"

# Network failures that never reached the provider's application layer.
_transient_errors = (requests.ConnectionError, requests.Timeout)


def generate_user_agent():
    """Generate a user agent string."""
    python_version = platform.python_version()
    (system, _, release, _, _, _) = platform.uname()

    base_os = "compatible"
    if system == "Darwin":
        base_os = "Macintosh"
    elif system == "Linux":
        base_os = "X11"
    elif system == "Windows":
        base_os = "Windows"
    else:
        logger.warning(f"Unknown platform: {system}")

    user_agent = (
        f"{__title__}/{__version__} "
        f"({base_os}; {system}/{release}) "
        f"Python/{python_version}; "
        f"requests/{requests.__version__})"
    )
    logger.debug(f"User agent: {user_agent}")
    return user_agent


class HTTPClient:
    """Handles HTTP client operations for a single login attempt."""

    def __init__(self, username=None, timeout=30):
        """Initialize the HTTPClient with a session object.

        :param username: optional username the session is bound to.
        :param timeout: timeout in seconds for every request.
        """
        user_agent = generate_user_agent()
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        self.timeout = timeout
        self.username = username

    def bind(self, username):
        """Bind the session to a username.

        Cookies collected for one account must never be sent on behalf of another.
        :param username: username of the login attempt.
        """
        if self.username is not None and self.username != username:
            raise SessionReuseError(self.username, username)
        self.username = username

    def get_cookies(self, url):
        """Get the cookies that would be sent to a URL.

        :param url: URL string
        :return: dict of cookie names and values
        """
        request = requests.Request("GET", url)
        header = requests.cookies.get_cookie_header(self.session.cookies, request)
        cookies = {}
        for pair in (header or "").split("; "):
            if not pair:
                continue
            name, _, value = pair.partition("=")
            cookies[name] = value
        return cookies

    def _request(self, method, url, retries, check_status, **kwargs):
        """Send a request, retrying only on transient network errors."""
        attempt = 0
        while True:
            try:
                logger.debug(f"{method} to {url}")
                response = self.session.request(method, url, timeout=self.timeout, **kwargs)
                break
            except _transient_errors as err:
                if attempt >= retries:
                    logger.error(f"Error during {method} request to {url}. Error: {err}")
                    raise ProviderConnectionError(f"Could not reach {url}: {err}") from err
                attempt += 1
                logger.warning(f"Retrying {method} to {url} ({attempt}/{retries}): {err}")
            except requests.RequestException as err:
                logger.error(f"Error during {method} request to {url}. Error: {err}")
                raise ProviderConnectionError(f"Request to {url} failed: {err}") from err

        logger.debug(f"Response status: {response.status_code}")
        if check_status and not response.ok:
            logger.debug(f"Response Headers: {response.headers}")
            raise ProviderHTTPError(url, response.status_code)
        return response

    def get(
        self, url, params=None, headers=None, allow_redirects=True, retries=0, check_status=True
    ):
        """Perform a GET request."""
        return self._request(
            "GET",
            url,
            retries,
            check_status,
            params=params,
            headers=headers,
            allow_redirects=allow_redirects,
        )

    def post(
        self,
        url,
        data=None,
        json=None,
        headers=None,
        params=None,
        return_json=False,
        retries=0,
        check_status=True,
    ):
        """Perform a POST request.

        :param return_json: return the decoded body instead of the response object.
        :param retries: transient network errors tolerated before giving up.
        :param check_status: raise ProviderHTTPError on a non-2xx status.
        """
        response = self._request(
            "POST",
            url,
            retries,
            check_status,
            data=data,
            json=json,
            params=params,
            headers=headers,
        )
        if return_json is True:
            try:
                return response.json()
            except ValueError as err:
                logger.error(f"Problem with json response {err}")
                raise ProviderHTTPError(
                    url, response.status_code, f"Response from {url} is not valid JSON"
                ) from err
        return response

    def get_device_token(self, url=None):
        """Get the device token from the current session cookies.

        :param url: optional URL the cookie has to be valid for.
        :return: Device token or None
        """
        if url is not None:
            return self.get_cookies(url).get(DEVICE_TOKEN_COOKIE, None)
        for cookie in self.session.cookies:
            if cookie.name == DEVICE_TOKEN_COOKIE:
                return cookie.value
        return None

    def set_device_token(self, org_url, device_token):
        """Set the device token in the current session cookies.

        :param org_url: The organization URL
        :param device_token: The device token
        :return: None
        """
        if not device_token:
            return

        self.session.cookies.set(
            DEVICE_TOKEN_COOKIE, device_token, domain=urlparse(org_url).hostname, path="/"
        )
