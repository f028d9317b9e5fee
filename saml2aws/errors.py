# vim: set filetype=python ts=4 sw=4
# -*- coding: utf-8 -*-
"""Error kinds raised while authenticating against an identity provider.

Every failure is terminal for the login attempt that raised it. The caller decides
whether to prompt for a new password, pick another factor, or retry later based on
the class of the error, so the kinds are kept distinct.
"""


class Saml2AwsError(Exception):
    """Base class for all saml2aws errors."""


class UnknownProvider(Saml2AwsError):
    """No identity provider is registered under the requested name."""

    def __init__(self, name):
        """Initialize with the provider name that was not found."""
        self.name = name
        super().__init__(f"Unknown identity provider '{name}'")


class SessionReuseError(Saml2AwsError):
    """An HTTP session was reused for a different username."""

    def __init__(self, bound_username, username):
        """Initialize with both usernames involved."""
        self.bound_username = bound_username
        self.username = username
        super().__init__(
            f"HTTP session belongs to '{bound_username}' and cannot be reused for '{username}'"
        )


class ProviderConnectionError(Saml2AwsError):
    """The provider could not be reached."""


class ProviderHTTPError(Saml2AwsError):
    """The provider answered with an unexpected HTTP status code."""

    def __init__(self, url, status_code, message=None):
        """Initialize with the failed URL and status code."""
        self.url = url
        self.status_code = status_code
        super().__init__(message or f"Request to {url} failed with HTTP status {status_code}")


class StateTokenNotFound(Saml2AwsError):
    """No state token assignment was found in a page body."""

    def __init__(self, message="cannot find state token"):
        """Initialize with the fixed message."""
        super().__init__(message)


class ProviderAPIError(Saml2AwsError):
    """The provider API returned an error payload."""

    def __init__(self, code, summary=None, message=None):
        """Initialize with the provider error code and summary."""
        self.code = code
        self.summary = summary
        super().__init__(message or f"{code}: {summary}")


class InvalidCredentials(ProviderAPIError):
    """The username or password was rejected."""


class ProviderStatusError(Saml2AwsError):
    """Base class for errors carrying a raw provider status."""

    def __init__(self, status, message=None):
        """Initialize with the raw status string."""
        self.status = status
        super().__init__(message or f"Unexpected status {status}")


class MFAEnrollmentRequired(ProviderStatusError):
    """The provider requires a factor to be enrolled before logging in."""


class AccountLockedOut(ProviderStatusError):
    """The account is locked out."""


class PasswordExpired(ProviderStatusError):
    """The password has expired."""


class UnexpectedProviderStatus(ProviderStatusError):
    """A status outside the recognized vocabulary was returned."""


class FactorIndexOutOfRange(Saml2AwsError):
    """A factor position beyond the enrolled factor list was requested."""

    def __init__(self, index, count):
        """Initialize with the requested index and the number of factors."""
        self.index = index
        self.count = count
        super().__init__(f"Factor index {index} is out of range, {count} factor(s) available")


class UnsupportedFactor(Saml2AwsError):
    """The selected factor cannot be verified by this engine."""

    def __init__(self, identifier):
        """Initialize with the factor identifier."""
        self.identifier = identifier
        super().__init__(f"The MFA factor '{identifier}' is not supported")


class FactorRejected(Saml2AwsError):
    """The factor was denied, or wrong codes were entered too many times."""


class FactorTimeout(Saml2AwsError):
    """The factor was not approved before the polling window closed."""


class LoginCancelled(Saml2AwsError):
    """The login was cancelled while waiting for a factor."""


class AssertionNotFound(Saml2AwsError):
    """The application page did not contain a SAML assertion."""
