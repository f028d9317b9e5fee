# vim: set filetype=python ts=4 sw=4
# -*- coding: utf-8 -*-
"""pytest configuration, hooks, and global fixtures."""
import pytest


def pytest_addoption(parser):
    """Add command-line options for running functional tests with credentials."""
    parser.addoption("--username", default="", help="username to log in to Okta")
    parser.addoption("--password", default="", help="password to log in to Okta.")
    parser.addoption("--url", default=None, help="Application embed link to use.")
    parser.addoption("--mfa", default=None, help="Sets the MFA method")
    parser.addoption("--mfa-response", default=None, help="Sets the MFA response to a challenge")


@pytest.fixture
def custom_args(request):
    """Search the custom command-line options and return a list of keys and values."""
    options = [
        "--username",
        "--password",
        "--url",
        "--mfa",
        "--mfa-response",
    ]
    arg_list = []
    # pytest does not have a method for listing options, so we have look them up.
    for item in options:
        if request.config.getoption(item):
            arg_list.extend([item, request.config.getoption(item)])
    return arg_list


@pytest.fixture
def sample_json_response():
    """Return a response from okta server."""
    from okta_response_simulation import empty_dict
    from okta_response_simulation import error_dict
    from okta_response_simulation import locked_out
    from okta_response_simulation import mfa_enroll
    from okta_response_simulation import no_auth_methods
    from okta_response_simulation import no_mfa
    from okta_response_simulation import no_mfa_no_session_token
    from okta_response_simulation import password_expired
    from okta_response_simulation import with_mfa

    okta_fixture_data = {
        "okta_response_no_auth_methods": no_auth_methods,
        "okta_response_empty": empty_dict,
        "okta_response_error": error_dict,
        "okta_response_no_mfa": no_mfa,
        "okta_response_no_mfa_no_session_token": no_mfa_no_session_token,
        "okta_response_mfa": with_mfa,
        "okta_response_mfa_enroll": mfa_enroll,
        "okta_response_locked_out": locked_out,
        "okta_response_password_expired": password_expired,
    }
    return okta_fixture_data


@pytest.fixture
def okta_config():
    """Return a Config object with an application URL and credentials set."""
    from saml2aws.config import Config

    return Config(
        idp={
            "url": "https://acme.okta.com/home/amazon_aws/0oa1b2c3d4/272",
            "username": "pytest@acme.org",
            "password": "pytest_password",
            "poll_interval": 0,
            "poll_timeout": 5,
        }
    )


@pytest.fixture
def login_details():
    """Return the credentials of a login attempt."""
    from saml2aws.provider import LoginDetails

    return LoginDetails(
        username="pytest@acme.org",
        password="pytest_password",
        url="https://acme.okta.com/home/amazon_aws/0oa1b2c3d4/272",
    )
