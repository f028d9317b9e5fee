# vim: set filetype=python ts=4 sw=4
# -*- coding: utf-8 -*-
"""
Handle the Okta operations.

1. Okta authentication, and reuse of an existing Okta session
2. MFA factor selection and verification
3. Remembered device management
4. SAML assertion retrieval, including step-up authentication

"""
import codecs
import logging
import re
import threading
from urllib.parse import urlparse

import bs4
from bs4 import BeautifulSoup
from saml2aws import factors
from saml2aws import user
from saml2aws.errors import AccountLockedOut
from saml2aws.errors import AssertionNotFound
from saml2aws.errors import MFAEnrollmentRequired
from saml2aws.errors import PasswordExpired
from saml2aws.errors import StateTokenNotFound
from saml2aws.errors import UnexpectedProviderStatus
from saml2aws.http_client import HTTPClient
from saml2aws.mfa import FactorVerifier
from saml2aws.okta_helpers import api_error_code_parser
from saml2aws.okta_helpers import get_state_token
from saml2aws.okta_helpers import okta_api_post
from saml2aws.provider import Provider
from saml2aws.provider import register

logger = logging.getLogger(__name__)

_state_token_pattern = re.compile(
    r"""\bstateToken\s*=\s*(?P<quote>['"])"""
    r"""(?P<stateToken>(?:\\.|(?!(?P=quote))[^\\\n])*)(?P=quote)"""
)
_js_escape_pattern = re.compile(
    r"\\(?:x(?P<hex>[0-9a-fA-F]{2})|u(?P<unicode>[0-9a-fA-F]{4})|(?P<char>.))"
)

_fatal_statuses = dict(
    MFA_ENROLL=MFAEnrollmentRequired,
    LOCKED_OUT=AccountLockedOut,
    PASSWORD_EXPIRED=PasswordExpired,
)


def get_base_url(urlstring):
    """Extract the scheme and host of a URL.

    :param urlstring: URL string
    :return: `scheme://host[:port]` string
    """
    url = urlparse(urlstring)
    return f"{url.scheme}://{url.netloc}"


def device_token_value(username):
    """Return the device token identifying this tool for a username."""
    return f"okta_{username}_saml2aws"


def _unescape_js(match):
    code = match.group("hex") or match.group("unicode")
    if code:
        return chr(int(code, 16))
    return match.group("char")


def extract_state_token(html):
    """Parse an HTML document, and extract a state token.

    The token is assigned in an inline script, as in `var stateToken = '...';`.
    Okta escapes some characters of the value, for instance `-` as `\\x2D`.

    :param html: String with HTML document
    :return: string with the decoded state token, which may be empty
    """
    match = _state_token_pattern.search(html or "")
    if not match:
        raise StateTokenNotFound()
    encoded_token = match.group("stateToken")
    state_token = _js_escape_pattern.sub(_unescape_js, encoded_token)
    if state_token:
        user.add_sensitive_value_to_be_masked(state_token)
    return state_token


def extract_saml_response(html, raw=False):
    """Parse html, and extract a SAML document.

    :param html: String with HTML document.
    :param raw: Boolean that determines whether or not the response should be decoded.
    :return: XML Document, or None
    """
    soup = BeautifulSoup(html, "html.parser")
    xml = None
    saml_base64 = None
    retval = None

    elem = soup.find("input", attrs={"name": "SAMLResponse"})
    if type(elem) is bs4.element.Tag and elem.get("value"):
        saml_base64 = str(elem.get("value"))
        retval = saml_base64
        if not raw:
            xml = codecs.decode(saml_base64.encode("ascii"), "base64").decode("utf-8")
            retval = xml
    return retval


def extract_error_content(html):
    """Parse html, and extract the error message Okta shows on its error pages."""
    soup = BeautifulSoup(html, "html.parser")
    elem = soup.find(class_="error-content")
    if type(elem) is bs4.element.Tag:
        return elem.get_text(" ", strip=True)
    return None


def classify_authn_response(response):
    """Classify the status of an authentication response.

    :param response: decoded JSON body of /api/v1/authn
    :return: `SUCCESS` or `MFA_REQUIRED`
    """
    status = response.get("status", None)
    if status in ("SUCCESS", "MFA_REQUIRED"):
        return status
    if status in _fatal_statuses:
        message = api_error_code_parser(status)
        logger.error(message)
        raise _fatal_statuses[status](status, message)
    logger.error(f"Okta auth failed: unknown status {status}")
    raise UnexpectedProviderStatus(status, f"Okta auth failed: unknown status {status}")


@register("okta")
class OktaProvider(Provider):
    """Authenticate to Okta, and retrieve a SAML assertion for an application."""

    def __init__(
        self,
        config,
        client=None,
        cancel_event=None,
        passcode_callback=None,
        factor_selector=None,
        challenge_callback=None,
        webauthn_signer=None,
    ):
        """Initialize the provider.

        :param config: Config object, the `idp` section is used
        :param client: optional HTTPClient, one is created when missing
        :param cancel_event: threading.Event aborting the login while polling
        :param passcode_callback: callable(factor) returning a verification code
        :param factor_selector: callable(list of factors) returning a factor index
        :param challenge_callback: callable receiving a push number challenge
        :param webauthn_signer: callable signing WebAuthn challenges
        """
        super().__init__(config)
        self.disable_sessions = bool(config.idp["disable_sessions"])
        self.remember_device = not bool(config.idp["disable_remember_device"])
        self.client = client or HTTPClient(timeout=config.idp["http_timeout"])
        self.cancel_event = cancel_event or threading.Event()
        self.passcode_callback = passcode_callback
        self.factor_selector = factor_selector
        self.challenge_callback = challenge_callback
        self.webauthn_signer = webauthn_signer
        self.device_token = None

    @property
    def use_device_token(self):
        """Whether the remembered device cookie is managed."""
        return self.remember_device and not self.disable_sessions

    def cancel(self):
        """Abort a login waiting on an out of band factor."""
        self.cancel_event.set()

    def authenticate(self, login_details):
        """Log in, and return the base64 encoded SAML assertion.

        :param login_details: LoginDetails tuple
        :return: SAML assertion string
        """
        self.client.bind(login_details.username)
        user.add_sensitive_value_to_be_masked(login_details.password)
        base_url = get_base_url(login_details.url)

        if not self.disable_sessions and self.validate_existing_session(base_url):
            logger.info(f"Reusing the existing session for {base_url}.")
            return self.retrieve_assertion(login_details, login_details.url)

        if self.use_device_token:
            self.set_device_token_cookie(login_details)

        primary_auth = self.primary_authenticate(login_details)
        logger.info(f"User has been successfully authenticated to {base_url}.")

        if self.use_device_token:
            self.confirm_device_trust(login_details)

        params = {
            "checkAccountSetupComplete": "true",
            "token": primary_auth["sessionToken"],
            "redirectUrl": login_details.url,
        }
        return self.retrieve_assertion(
            login_details, f"{base_url}/login/sessionCookieRedirect", params=params
        )

    def validate_existing_session(self, base_url):
        """Check whether the session cookie still belongs to a live Okta session.

        :param base_url: Okta org URL
        :return: True if the session can be reused
        """
        if "sid" not in self.client.get_cookies(base_url):
            return False

        response = self.client.get(
            f"{base_url}/api/v1/sessions/me",
            headers={"accept": "application/json"},
            retries=1,
            check_status=False,
        )
        if response.ok:
            logger.debug(f"Session cookie is valid for {base_url}")
            return True
        logger.debug(f"Session cookie is no longer valid: HTTP {response.status_code}")
        return False

    def primary_authenticate(self, login_details):
        """Authenticate user on the Okta instance.

        :param login_details: LoginDetails tuple
        :return: response with status SUCCESS and a session token
        """
        url = f"{get_base_url(login_details.url)}/api/v1/authn"
        payload = {
            "username": login_details.username,
            "password": login_details.password,
            "options": {"multiOptionalFactorEnroll": False, "warnBeforePasswordExpired": False},
        }
        logger.debug(f"Authenticate user to {url}")

        primary_auth = okta_api_post(self.client, url, payload, retries=1)
        if classify_authn_response(primary_auth) == "MFA_REQUIRED":
            primary_auth = self.mfa_challenge(login_details, primary_auth)

        session_token = primary_auth.get("sessionToken", None)
        if not session_token:
            logger.error("Okta auth failed: no session token was returned.")
            raise UnexpectedProviderStatus(
                primary_auth.get("status", None), "Okta auth succeeded without a session token"
            )
        user.add_sensitive_value_to_be_masked(session_token)
        return primary_auth

    def select_factor_index(self, factor_list):
        """Decide which factor to verify.

        A factor matching the preferred MFA setting wins when the match is unique.
        Otherwise the factor selector chooses among the candidates, and without
        a selector the first candidate is used.

        :param factor_list: list of Factor objects
        :return: index of the selected factor
        """
        preset_mfa = self.config.idp["mfa"]
        indices = factors.find_factor_indices(factor_list, preset_mfa)
        if len(indices) == 1:
            logger.debug(f"One match: {preset_mfa} in {indices}")
            return indices[0]

        candidates = factor_list
        if indices:
            logger.warning(f"{preset_mfa} is not unique in {[f.identifier for f in factor_list]}.")
            candidates = [factor_list[i] for i in indices]
        elif preset_mfa:
            logger.warning(f"No factor matches {preset_mfa}.")

        if len(candidates) > 1 and self.factor_selector is not None:
            return self.factor_selector(candidates)
        return candidates[0].index

    def mfa_challenge(self, login_details, primary_auth):
        """Handle user mfa challenges.

        :param login_details: LoginDetails tuple
        :param primary_auth: authentication response with status MFA_REQUIRED
        :return: response with status SUCCESS
        """
        logger.debug("Handle user MFA challenges")
        state_token = get_state_token(primary_auth)
        if not state_token:
            logger.error("The authentication response has no state token.")
            raise StateTokenNotFound()
        user.add_sensitive_value_to_be_masked(state_token)

        factor_list = factors.parse_factors(primary_auth)
        if not factor_list:
            logger.error("No MFA factor is available for this user.")
            raise MFAEnrollmentRequired(
                primary_auth.get("status", None), "No MFA factor is enrolled for this user"
            )

        index = self.select_factor_index(factor_list)
        selected_factor = factors.resolve_factor(primary_auth, index)
        logger.debug(f"Selected MFA is [{selected_factor}]")

        verifier = FactorVerifier(
            self.client,
            state_token,
            remember_device=self.use_device_token,
            passcode_callback=self.passcode_callback,
            max_attempts=int(self.config.idp["mfa_attempts"]),
            poll_interval=float(self.config.idp["poll_interval"]),
            poll_timeout=float(self.config.idp["poll_timeout"]),
            cancel_event=self.cancel_event,
            challenge_callback=self.challenge_callback,
            webauthn_signer=self.webauthn_signer,
            origin=get_base_url(login_details.url),
        )
        passcode = login_details.mfa_token or self.config.idp["mfa_response"]
        return verifier.verify(selected_factor, passcode)

    def set_device_token_cookie(self, login_details):
        """Store the remembered device cookie for the user in the session."""
        device_token = device_token_value(login_details.username)
        self.client.set_device_token(login_details.url, device_token)
        logger.debug(f"Device token cookie set for {get_base_url(login_details.url)}")
        return device_token

    def confirm_device_trust(self, login_details):
        """Make sure the remembered device cookie is present after a login.

        :param login_details: LoginDetails tuple
        :return: True if the session holds a device token for the Okta org
        """
        authn_url = f"{get_base_url(login_details.url)}/api/v1/authn"
        device_token = self.client.get_device_token(authn_url)
        if not device_token:
            logger.warning("Device token cookie was not found after login, setting it again.")
            self.set_device_token_cookie(login_details)
            device_token = self.client.get_device_token(authn_url)

        self.device_token = device_token
        return bool(device_token)

    def step_up_authenticate(self, login_details, state_token):
        """Authenticate again with the state token of an application page.

        :param login_details: LoginDetails tuple
        :param state_token: state token embedded in the application page
        :return: state token to follow the step-up redirect with
        """
        url = f"{get_base_url(login_details.url)}/api/v1/authn"
        auth = okta_api_post(self.client, url, {"stateToken": state_token}, retries=1)

        if classify_authn_response(auth) == "MFA_REQUIRED":
            auth = self.mfa_challenge(login_details, auth)
        return get_state_token(auth, state_token)

    def retrieve_assertion(self, login_details, url, params=None):
        """Fetch an application page, and extract the SAML assertion from it.

        When the page asks for step-up authentication instead, the state token it
        embeds is used to authenticate again before following the step-up redirect.

        :param login_details: LoginDetails tuple
        :param url: URL leading to the application embed link
        :param params: optional query parameters
        :return: base64 encoded SAML assertion
        """
        logger.debug(f"Retrieving SAML assertion from {url}")
        response = self.client.get(url, params=params, headers={"accept": "text/html"})
        saml_response = extract_saml_response(response.text, raw=True)

        if not saml_response:
            try:
                state_token = extract_state_token(response.text)
            except StateTokenNotFound:
                error = extract_error_content(response.text)
                logger.error(f"Did not receive a SAML assertion from {login_details.url}.")
                raise AssertionNotFound(
                    f"No SAML assertion found for {login_details.url}"
                    + (f": {error}" if error else "")
                )

            logger.info("Additional verification is required to access the application.")
            state_token = self.step_up_authenticate(login_details, state_token)
            response = self.client.get(
                f"{get_base_url(login_details.url)}/login/step-up/redirect",
                params={"stateToken": state_token},
                headers={"accept": "text/html"},
            )
            saml_response = extract_saml_response(response.text, raw=True)
            if not saml_response:
                logger.error("Did not receive a SAML assertion after step-up authentication.")
                raise AssertionNotFound(
                    f"No SAML assertion found for {login_details.url} after step-up authentication"
                )

        user.add_sensitive_value_to_be_masked(saml_response)
        return saml_response
