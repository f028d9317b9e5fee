# vim: set filetype=python ts=4 sw=4
# -*- coding: utf-8 -*-
"""Sign WebAuthn challenges with a FIDO2 authenticator attached over USB HID."""
import base64
import logging
from urllib.parse import urlparse

from fido2.client import ClientError
from fido2.client import Fido2Client
from fido2.hid import CtapHidDevice
from fido2.utils import websafe_decode
from fido2.webauthn import PublicKeyCredentialDescriptor
from fido2.webauthn import PublicKeyCredentialRequestOptions
from fido2.webauthn import PublicKeyCredentialType
from fido2.webauthn import UserVerificationRequirement
from saml2aws.errors import FactorRejected
from saml2aws.errors import UnsupportedFactor

logger = logging.getLogger(__name__)


def get_devices():
    """List the FIDO2 devices currently attached."""
    return list(CtapHidDevice.list_devices())


class WebAuthnClient(object):
    """Callable signer used by the factor verifier for WebAuthn factors."""

    def __init__(self, origin, timeout=60):
        """Initialize the client.

        :param origin: provider base URL, e.g. https://example.okta.com
        :param timeout: seconds the authenticator waits for a touch
        """
        self.origin = origin
        self.rp_id = urlparse(origin).hostname
        self.timeout = timeout

    def __call__(self, challenge, credential_id):
        """Sign a challenge.

        :param challenge: base64url encoded challenge nonce
        :param credential_id: base64url encoded credential id
        :return: dict with clientData, authenticatorData and signatureData
        """
        options = PublicKeyCredentialRequestOptions(
            challenge=websafe_decode(challenge),
            timeout=self.timeout * 1000,
            rp_id=self.rp_id,
            allow_credentials=[
                PublicKeyCredentialDescriptor(
                    type=PublicKeyCredentialType.PUBLIC_KEY, id=websafe_decode(credential_id)
                )
            ],
            user_verification=UserVerificationRequirement.DISCOURAGED,
        )

        devices = get_devices()
        if not devices:
            logger.error("No FIDO2 authenticator was found, please insert your security key.")
            raise UnsupportedFactor("FIDO WEBAUTHN")

        for device in devices:
            logger.debug(f"Trying authenticator {device}")
            client = Fido2Client(device, self.origin)
            try:
                response = client.get_assertion(options).get_response(0)
            except ClientError as err:
                logger.debug(f"Authenticator {device} could not sign the challenge: {err}")
                continue
            return {
                "clientData": base64.urlsafe_b64encode(response.client_data).decode("utf-8"),
                "authenticatorData": base64.b64encode(response.authenticator_data).decode(
                    "utf-8"
                ),
                "signatureData": base64.b64encode(response.signature).decode("utf-8"),
            }

        raise FactorRejected("None of the attached authenticators could sign the challenge")
