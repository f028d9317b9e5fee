# vim: set filetype=python ts=4 sw=4
# -*- coding: utf-8 -*-
"""Verify a selected MFA factor.

Passcode factors (TOTP, SMS, voice, email, security question) are verified with
a single request per attempt, and a wrong code is asked for again until the
attempt limit is reached. Push factors are approved out of band, so the
verification state is polled until it is approved, rejected, or times out.
"""
from enum import Enum
import logging
import threading
import time

from saml2aws import factors
from saml2aws import user
from saml2aws.errors import FactorRejected
from saml2aws.errors import FactorTimeout
from saml2aws.errors import LoginCancelled
from saml2aws.errors import UnexpectedProviderStatus
from saml2aws.errors import UnsupportedFactor
from saml2aws.okta_helpers import get_next_url
from saml2aws.okta_helpers import get_state_token
from saml2aws.okta_helpers import INVALID_PASSCODE
from saml2aws.okta_helpers import okta_api_post

logger = logging.getLogger(__name__)

# Status checks are idempotent, so they tolerate more network hiccups.
POLL_RETRIES = 3


class PollState(Enum):
    """States of an out of band factor verification."""

    CHALLENGED = "CHALLENGED"
    WAITING = "WAITING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    TIMED_OUT = "TIMED_OUT"


def classify_factor_response(response):
    """Map a verification response to a PollState.

    Okta documents `factorResult` as one of SUCCESS, REJECTED, TIMEOUT and WAITING,
    but on success only `status` is set, so it has to be checked first.
    :param response: decoded JSON body
    :return: PollState
    """
    status = response.get("status", None)
    result = response.get("factorResult", None)

    if status == "SUCCESS":
        return PollState.APPROVED
    if result == "REJECTED":
        return PollState.REJECTED
    if result == "TIMEOUT":
        return PollState.TIMED_OUT
    if status == "MFA_CHALLENGE" and result in (None, "WAITING", "CHALLENGE"):
        return PollState.WAITING
    raise UnexpectedProviderStatus(status or result)


def get_correct_answer(response):
    """Return the number challenge answer of an Okta Verify push, if any."""
    factor = (response.get("_embedded") or {}).get("factor") or {}
    challenge = (factor.get("_embedded") or {}).get("challenge") or {}
    return challenge.get("correctAnswer", None)


def log_challenge(answer):
    """Report a number challenge through the log."""
    logger.info(f"Number Challenge response is {answer}")


class FactorPoller(object):
    """Poll the verification state of an out of band factor.

    The poller starts as CHALLENGED. Every tick re-issues the status check and
    moves to WAITING, APPROVED, REJECTED or TIMED_OUT. `run()` ticks at a fixed
    interval until a terminal state is reached or the timeout elapses. The wait
    between ticks returns as soon as the cancellation event is set.
    """

    terminal_states = (PollState.APPROVED, PollState.REJECTED, PollState.TIMED_OUT)

    def __init__(
        self,
        client,
        poll_url,
        state_token,
        interval=2,
        timeout=120,
        cancel_event=None,
        on_challenge=None,
        params=None,
        clock=time.monotonic,
    ):
        """Initialize the poller.

        :param client: HTTPClient of the login attempt
        :param poll_url: URL of the status check
        :param state_token: current state token
        :param interval: seconds between status checks
        :param timeout: seconds before giving up
        :param cancel_event: threading.Event set by the caller to abort
        :param on_challenge: callable receiving the number challenge answer
        :param params: query parameters sent with every status check
        :param clock: monotonic clock function
        """
        self.client = client
        self.poll_url = poll_url
        self.state_token = state_token
        self.interval = interval
        self.timeout = timeout
        self.cancel_event = cancel_event or threading.Event()
        self.on_challenge = on_challenge or log_challenge
        self.params = params
        self.clock = clock
        self.state = PollState.CHALLENGED
        self.response = {}
        self._challenge_displayed = False

    @property
    def done(self):
        """Whether a terminal state was reached."""
        return self.state in self.terminal_states

    def update(self, response):
        """Record a verification response and move to the matching state.

        :param response: decoded JSON body
        :return: the new PollState
        """
        self.response = response
        self.state_token = get_state_token(response, self.state_token)
        self.poll_url = get_next_url(response, self.poll_url)
        if "sessionToken" in response:
            user.add_sensitive_value_to_be_masked(response["sessionToken"])

        answer = get_correct_answer(response)
        if answer and not self._challenge_displayed:
            self.on_challenge(answer)
            self._challenge_displayed = True

        self.state = classify_factor_response(response)
        logger.debug(f"Poll state is {self.state.value}")
        return self.state

    def tick(self):
        """Issue one status check."""
        response = okta_api_post(
            self.client,
            self.poll_url,
            {"stateToken": self.state_token},
            params=self.params,
            retries=POLL_RETRIES,
        )
        return self.update(response)

    def run(self, response=None):
        """Poll until the factor is approved.

        :param response: optional initial verification response
        :return: the approving response
        """
        if response is not None:
            self.update(response)

        deadline = self.clock() + self.timeout
        while not self.done:
            remaining = deadline - self.clock()
            if remaining <= 0:
                self.state = PollState.TIMED_OUT
                break
            if self.cancel_event.wait(min(self.interval, remaining)):
                logger.error("Login was cancelled while waiting for the MFA approval.")
                raise LoginCancelled("Login cancelled while waiting for the MFA approval")
            self.tick()

        if self.state == PollState.APPROVED:
            return self.response
        if self.state == PollState.REJECTED:
            logger.error("The push notification has been denied.")
            raise FactorRejected("The MFA request was rejected")
        logger.error("Device approval window has expired.")
        raise FactorTimeout(f"The MFA request was not approved within {self.timeout} seconds")


class FactorVerifier(object):
    """Verify the factor selected for an in-progress login."""

    def __init__(
        self,
        client,
        state_token,
        remember_device=False,
        passcode_callback=None,
        max_attempts=3,
        poll_interval=2,
        poll_timeout=120,
        cancel_event=None,
        challenge_callback=None,
        webauthn_signer=None,
        origin=None,
    ):
        """Initialize the verifier.

        :param client: HTTPClient of the login attempt
        :param state_token: state token of the login
        :param remember_device: ask the provider to trust this device
        :param passcode_callback: callable(factor) returning a code, used to re-prompt
        :param max_attempts: wrong codes tolerated before failing
        :param poll_interval: seconds between push status checks
        :param poll_timeout: seconds before a push is considered expired
        :param cancel_event: threading.Event set by the caller to abort polling
        :param challenge_callback: callable receiving the number challenge answer
        :param webauthn_signer: callable(challenge, credential_id) returning the
            clientData, authenticatorData and signatureData fields
        :param origin: provider base URL, used as WebAuthn origin
        """
        self.client = client
        self.state_token = state_token
        self.remember_device = remember_device
        self.passcode_callback = passcode_callback
        self.max_attempts = max_attempts
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self.cancel_event = cancel_event
        self.challenge_callback = challenge_callback
        self.webauthn_signer = webauthn_signer
        self.origin = origin

    @property
    def params(self):
        """Query parameters sent with verification requests."""
        return {"rememberDevice": str(bool(self.remember_device)).lower()}

    def verify(self, factor, passcode=None):
        """Verify a factor.

        :param factor: Factor object
        :param passcode: optional code supplied up front
        :return: response with status SUCCESS
        """
        logger.debug(f"Verifying {factor}")
        if not factor.verify_url:
            raise UnsupportedFactor(factor.identifier)

        if factor.verification == factors.PASSCODE:
            return self.verify_passcode(factor, factor.verify_url, passcode)
        elif factor.verification == factors.ANSWER:
            return self.verify_passcode(factor, factor.verify_url, passcode, field="answer")
        elif factor.verification == factors.CHALLENGE_PASSCODE:
            return self.verify_challenge_passcode(factor, passcode)
        elif factor.verification == factors.PUSH:
            return self.verify_push(factor)
        elif factor.verification == factors.WEBAUTHN:
            return self.verify_webauthn(factor)

        logger.error(
            f"Sorry, the MFA provider '{factor.identifier}' is not yet supported."
            " Please retry with another option."
        )
        raise UnsupportedFactor(factor.identifier)

    def _post(self, url, payload, retries=1, allowed_errors=()):
        response = okta_api_post(
            self.client,
            url,
            payload,
            params=self.params,
            retries=retries,
            allowed_errors=allowed_errors,
        )
        self.state_token = get_state_token(response, self.state_token)
        return response

    def _get_code(self, factor, passcode, attempt):
        if attempt == 1 and passcode:
            code = passcode
        elif self.passcode_callback is not None:
            code = self.passcode_callback(factor)
        else:
            code = None

        if not code:
            raise FactorRejected(f"No verification code available for {factor.identifier}")
        user.add_sensitive_value_to_be_masked(code)
        return code

    def verify_passcode(self, factor, url, passcode=None, field="passCode"):
        """Submit codes until one is accepted or attempts run out."""
        for attempt in range(1, self.max_attempts + 1):
            code = self._get_code(factor, passcode, attempt)
            response = self._post(
                url,
                {"stateToken": self.state_token, field: code},
                allowed_errors=(INVALID_PASSCODE,),
            )

            if response.get("errorCode", None) == INVALID_PASSCODE:
                state = PollState.REJECTED
            else:
                state = classify_factor_response(response)

            if state == PollState.APPROVED:
                if "sessionToken" in response:
                    user.add_sensitive_value_to_be_masked(response["sessionToken"])
                return response
            if state != PollState.REJECTED:
                raise UnexpectedProviderStatus(response.get("status", None))
            logger.error(
                f"Verification code was rejected ({attempt}/{self.max_attempts}), please try again."
            )

        raise FactorRejected(
            f"Verification of {factor.identifier} failed after {self.max_attempts} attempts"
        )

    def verify_challenge_passcode(self, factor, passcode=None):
        """Have the provider send a code, then verify it."""
        response = self._post(factor.verify_url, {"stateToken": self.state_token})
        if classify_factor_response(response) == PollState.APPROVED:
            return response
        logger.info(f"A verification code was sent using {factor.factor_type}.")
        url = get_next_url(response, factor.verify_url)
        return self.verify_passcode(factor, url, passcode)

    def verify_push(self, factor):
        """Send a push notification and wait for it to be answered."""
        response = self._post(factor.verify_url, {"stateToken": self.state_token})
        logger.info("Waiting for an approval from the device...")

        poller = FactorPoller(
            self.client,
            get_next_url(response, factor.verify_url),
            self.state_token,
            interval=self.poll_interval,
            timeout=self.poll_timeout,
            cancel_event=self.cancel_event,
            on_challenge=self.challenge_callback,
            params=self.params,
        )
        try:
            return poller.run(response)
        finally:
            self.state_token = poller.state_token

    def verify_webauthn(self, factor):
        """Sign the provider's challenge with a WebAuthn authenticator."""
        response = self._post(factor.verify_url, {"stateToken": self.state_token})
        if classify_factor_response(response) == PollState.APPROVED:
            return response

        embedded = (response.get("_embedded") or {}).get("factor") or {}
        challenge = (embedded.get("_embedded") or {}).get("challenge") or {}
        challenge = challenge.get("challenge", None)
        credential_id = (
            (embedded.get("profile") or {}).get("credentialId", None)
            or factor.profile.get("credentialId", None)
        )
        if not challenge or not credential_id:
            raise UnexpectedProviderStatus(
                response.get("status", None), "WebAuthn challenge is missing from the response"
            )

        signer = self.webauthn_signer
        if signer is None:
            from saml2aws.webauthn import WebAuthnClient

            signer = WebAuthnClient(self.origin)
        logger.info(f"Touch your authenticator '{factor.display_name}' to continue.")
        assertion = signer(challenge, credential_id)

        payload = {"stateToken": self.state_token}
        payload.update(assertion)
        result = self._post(get_next_url(response, factor.verify_url), payload)

        state = classify_factor_response(result)
        if state == PollState.APPROVED:
            return result
        if state == PollState.REJECTED:
            raise FactorRejected(f"The authenticator '{factor.display_name}' was rejected")
        raise UnexpectedProviderStatus(result.get("status", None))
