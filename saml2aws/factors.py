# vim: set filetype=python ts=4 sw=4
# -*- coding: utf-8 -*-
"""Model the MFA factors enrolled for an Okta user.

The authentication API lists factors as loosely typed JSON records. Only
`factorType` and `provider` are reliably present, and the shape of `profile`
depends on both. Each record is turned into an instance of the variant class
registered for its (factorType, provider) pair, which knows which profile
fields it carries, how it is displayed, and how it has to be verified.

Several factors can share an identifier (two security keys are both
`FIDO WEBAUTHN`). They are told apart by their position in the list only.
"""
import json
import logging

from saml2aws.errors import FactorIndexOutOfRange

logger = logging.getLogger(__name__)

# Verification styles understood by saml2aws.mfa.
PASSCODE = "passcode"
CHALLENGE_PASSCODE = "challenge_passcode"
ANSWER = "answer"
PUSH = "push"
WEBAUTHN = "webauthn"
UNSUPPORTED = "unsupported"

_variants = {}


def variant(factor_type, provider=None):
    """Register a Factor subclass for a factor type, and optionally a provider.

    :param factor_type: Okta factorType, e.g. `token:software:totp`.
    :param provider: Okta provider, or None to match any provider.
    """

    def decorator(cls):
        _variants[(factor_type, provider)] = cls
        return cls

    return decorator


class Factor(object):
    """A single enrolled factor."""

    profile_fields = ()
    verification = UNSUPPORTED

    def __init__(self, factor_type, provider, factor_id=None, profile=None, links=None, index=0):
        """Initialize the factor.

        :param factor_type: Okta factorType
        :param provider: Okta provider
        :param factor_id: Okta factor id
        :param profile: profile dict from the API, only known fields are kept
        :param links: `_links` dict from the API
        :param index: position in the enrolled factor list
        """
        self.factor_type = factor_type
        self.provider = provider
        self.id = factor_id
        self.index = index
        self.links = links or {}
        profile = profile or {}
        self.profile = {field: profile.get(field, None) for field in self.profile_fields}

    def __repr__(self):
        """Return a short description."""
        return f"<{type(self).__name__} [{self.index}] {self.identifier}>"

    @property
    def identifier(self):
        """Upper case `<provider> <factorType>` string."""
        return f"{self.provider} {self.factor_type}".strip().upper()

    @property
    def display_name(self):
        """Human readable name of the factor, or an empty string."""
        return ""

    @property
    def info(self):
        """Additional profile information shown next to the factor."""
        return ""

    @property
    def verify_url(self):
        """URL used to verify this factor."""
        return (self.links.get("verify") or {}).get("href", None)


@variant("token:software:totp")
class SoftwareTotpFactor(Factor):
    """Time based one time password generated by an app."""

    profile_fields = ("credentialId",)
    verification = PASSCODE

    @property
    def info(self):
        """Return the account the code generator is bound to."""
        return self.profile["credentialId"] or ""


@variant("token:hardware")
@variant("token:hotp")
@variant("token")
class HardwareTokenFactor(Factor):
    """Codes generated by a hardware token or a third party service."""

    profile_fields = ("credentialId",)
    verification = PASSCODE

    @property
    def info(self):
        """Return the token's credential id."""
        return self.profile["credentialId"] or ""


@variant("sms")
@variant("call")
class PhoneFactor(Factor):
    """Codes sent by text message or voice call."""

    profile_fields = ("phoneNumber",)
    verification = CHALLENGE_PASSCODE

    @property
    def info(self):
        """Return the masked phone number."""
        return self.profile["phoneNumber"] or ""


@variant("email")
class EmailFactor(Factor):
    """Codes sent by email."""

    profile_fields = ("email",)
    verification = CHALLENGE_PASSCODE

    @property
    def info(self):
        """Return the masked email address."""
        return self.profile["email"] or ""


@variant("question")
class QuestionFactor(Factor):
    """Security question."""

    profile_fields = ("question", "questionText")
    verification = ANSWER

    @property
    def info(self):
        """Return the question asked."""
        return self.profile["questionText"] or self.profile["question"] or ""


@variant("push", "OKTA")
class PushFactor(Factor):
    """Okta Verify push notification, approved out of band."""

    profile_fields = ("name", "platform", "deviceType", "version")
    verification = PUSH

    @property
    def display_name(self):
        """Return the name of the enrolled device."""
        return self.profile["name"] or ""


@variant("webauthn", "FIDO")
class WebAuthnFactor(Factor):
    """Security key or platform authenticator."""

    profile_fields = ("authenticatorName", "credentialId", "appId")
    verification = WEBAUTHN

    @property
    def display_name(self):
        """Return the name given to the authenticator."""
        return self.profile["authenticatorName"] or ""


@variant("web", "DUO")
class DuoFactor(Factor):
    """Duo Security, verified in an embedded frame."""

    profile_fields = ("credentialId",)


def factor_class(factor_type, provider):
    """Find the variant class for a factor type and provider."""
    for key in ((factor_type, provider), (factor_type, None)):
        if key in _variants:
            return _variants[key]
    return Factor


def build_factor(record, index=0):
    """Create a Factor instance from an API record.

    :param record: dict with a single factor, as returned by the API.
    :param index: position of the record in the factor list.
    :return: Factor instance
    """
    factor_type = record.get("factorType") or ""
    provider = record.get("provider") or ""
    cls = factor_class(factor_type, provider)
    return cls(
        factor_type,
        provider,
        factor_id=record.get("id", None),
        profile=record.get("profile", None),
        links=record.get("_links", None),
        index=index,
    )


def parse_factors(response):
    """Parse the enrolled factors out of an authentication response.

    :param response: response body, either as a dict or as a JSON string.
    :return: list of Factor objects, in the order the provider listed them.
    """
    if isinstance(response, (str, bytes)):
        response = json.loads(response)
    records = ((response or {}).get("_embedded") or {}).get("factors") or []
    factors = [build_factor(record, index) for index, record in enumerate(records)]
    logger.debug(f"Found factors: {factors}")
    return factors


def resolve_factor(response, index):
    """Return the factor at a position in the enrolled factor list.

    :param response: authentication response body, dict or JSON string.
    :param index: zero based position.
    :return: Factor object
    """
    factors = parse_factors(response)
    if not isinstance(index, int) or index < 0 or index >= len(factors):
        raise FactorIndexOutOfRange(index, len(factors))
    return factors[index]


def parse_mfa_identifier(response, index):
    """Return the identifier and display name of the factor at a position.

    :param response: authentication response body, dict or JSON string.
    :param index: zero based position.
    :return: tuple with identifier and display name.
    """
    factor = resolve_factor(response, index)
    return (factor.identifier, factor.display_name)


def find_factor_indices(factors, preset):
    """Find the positions of factors matching a preferred identifier.

    :param factors: list of Factor objects.
    :param preset: identifier, factor type, or factor id to look for.
    :return: list of matching positions.
    """
    if not preset:
        return []
    wanted = preset.upper()
    return [
        factor.index
        for factor in factors
        if wanted in (factor.identifier, factor.factor_type.upper(), str(factor.id).upper())
    ]
