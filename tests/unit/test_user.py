# vim: set filetype=python ts=4 sw=4
# -*- coding: utf-8 -*-
"""Unit tests, and local fixtures for the user module."""
import os
import sys

import pytest


@pytest.mark.xfail(
    sys.platform == "win32", reason="Windows does not always handle NULL stdin correctly."
)
def test_tty_assertion(monkeypatch):
    """Test the availability of stdin."""
    import io

    from saml2aws.user import tty_assertion

    # Test for NoneType
    monkeypatch.setattr("sys.stdin", None)
    with pytest.raises(SystemExit) as err:
        tty_assertion()
    assert err.value.code == 1

    # Test for a descriptor without a terminal
    monkeypatch.setattr("sys.stdin", io.StringIO(""))
    with pytest.raises(SystemExit) as err:
        tty_assertion()
    assert err.value.code == 1


def test_get_username(mocker):
    """Test whether data sent is the same as data returned."""
    from saml2aws import user

    mocker.patch("saml2aws.user.tty_assertion", return_value=True)
    mocker.patch("saml2aws.user.input", return_value="pytest_patched", create=True)
    val = user.get_username()

    assert val == "pytest_patched"


def test_get_password(mocker):
    """Test whether data sent is the same as data returned."""
    from saml2aws import user

    mocker.patch("saml2aws.user.tty_assertion", return_value=True)
    mocker.patch("saml2aws.user.getpass", return_value="pytest_patched")
    val = user.get_password()

    assert val == "pytest_patched"


def test_get_url(mocker):
    """Test that the application URL is asked for until it is valid."""
    from saml2aws import user

    mocker.patch("saml2aws.user.tty_assertion", return_value=True)
    mocker.patch(
        "saml2aws.user.input",
        side_effect=["pytest", "acme.okta.com/home/amazon_aws/0oa1/272"],
        create=True,
    )
    assert user.get_url() == "https://acme.okta.com/home/amazon_aws/0oa1/272"


def test_setup_logging():
    """Test logging setup."""
    import logging

    from saml2aws import user

    # test that a default level is set on a bad level
    ret = user.setup_logging({"loglevel": "pytest"})
    assert ret == logging.INFO

    # test that a correct level is set
    ret = user.setup_logging({"loglevel": "debug"})
    assert ret == logging.DEBUG


def test_setup_early_logging(monkeypatch, tmpdir):
    """Test early logging."""
    from argparse import Namespace

    from saml2aws import user

    path = tmpdir.mkdir("pytest")
    logfile = f"{path}/pytest_log"
    # test that known values are set correctly
    args = {"user_loglevel": "debug", "user_log_output_file": logfile}
    ret = user.setup_early_logging(Namespace(**args))
    assert ret["loglevel"] == "DEBUG"
    assert ret["log_output_file"] == logfile

    # test that unknown bad values are ignored
    args = {"pytest_bad": "pytest"}
    ret = user.setup_early_logging(Namespace(**args))
    assert "pytest_bad" not in ret

    # test that known values are set correctly, and bad ones ignored
    valid_keys = dict(
        SAML2AWS_USER_LOGLEVEL="debug",
        SAML2AWS_USER_LOG_OUTPUT_FILE=logfile,
    )
    invalid_keys = dict(SAML2AWS_USER_PYTEST_EXPECTED_FAILURE="pytest_expected_failure")

    monkeypatch.setattr(os, "environ", {**valid_keys, **invalid_keys})
    ret = user.setup_early_logging(Namespace())
    assert ret["loglevel"] == "DEBUG"
    assert "pytest_expected_failure" not in ret
    user.setup_logging({"loglevel": "INFO"})


@pytest.mark.parametrize("value,expected", [("00", 0), ("01", 1), ("5", 5)])
def test_collect_integer(mocker, value, expected):
    """Test whether integers from the user are retrieved."""
    from saml2aws import user

    mocker.patch("saml2aws.user.tty_assertion", return_value=True)
    mocker.patch("saml2aws.user.input", return_value=value, create=True)
    assert user.collect_integer(10) == expected


@pytest.mark.parametrize(
    "test,limit,expected",
    [(0, 10, True), (5, 10, True), (10, 10, False), (-1, 10, False), (1, 0, False)],
)
def test_check_within_range(test, limit, expected):
    """Test whether a given number is in the range 0 >= num < limit."""
    from saml2aws import user

    assert user.check_within_range(test, limit) is expected


@pytest.mark.parametrize(
    "value,expected",
    [
        ("-1", False),
        ("0", True),
        ("1", True),
        (-1, False),
        (0, True),
        (1, True),
        (3.7, False),
        ("3.7", False),
        ("seven", False),
        ("0xff", False),
        (None, False),
    ],
)
def test_check_integer(value, expected):
    """Test whether the integer testing function works within boundaries."""
    from saml2aws import user

    assert user.check_integer(value) is expected


@pytest.mark.parametrize(
    "test,limit,expected", [(1, 10, True), (-1, 10, False), ("pytest", 10, False)]
)
def test_validate_input(test, limit, expected):
    """Check if a given input is within the 0 >= num < limit range."""
    from saml2aws import user

    assert user.validate_input(test, limit) is expected


def test_get_input(mocker):
    """Check if provided input is return unmodified."""
    from saml2aws import user

    mocker.patch("saml2aws.user.tty_assertion", return_value=True)
    mocker.patch("saml2aws.user.input", return_value="pytest_patched", create=True)
    assert user.get_input() == "pytest_patched"


def test_add_sensitive_value_to_be_masked(monkeypatch):
    """Test adding some values only adds what is expected."""
    from saml2aws import user

    # Reset global mask_items
    monkeypatch.setattr(user, "mask_items", [])
    user.add_sensitive_value_to_be_masked("should be added")
    user.add_sensitive_value_to_be_masked("should be added2")
    user.add_sensitive_value_to_be_masked("should be added3", "password")
    user.add_sensitive_value_to_be_masked("should not be added", "public")
    user.add_sensitive_value_to_be_masked("")
    user.add_sensitive_value_to_be_masked(None)
    user.add_sensitive_value_to_be_masked("should be added")

    assert "should be added" in user.mask_items
    assert "should be added2" in user.mask_items
    assert "should be added3" in user.mask_items
    assert len(user.mask_items) == 3


def test_logger_mask(caplog):
    """Test that masking data in loggger works as expected."""
    import logging

    from saml2aws import user

    secret_dict = {"secret_key": "secret_val"}
    logger = logging.getLogger(__name__)
    logger.addFilter(user.MaskLoggerSecret())
    user.add_sensitive_value_to_be_masked("supersecret")
    user.add_sensitive_value_to_be_masked("another secret", "sessionToken")
    user.add_sensitive_value_to_be_masked(secret_dict["secret_key"])
    with caplog.at_level(logging.DEBUG):
        logger.debug("This should be displayed, but not: supersecret")
        logger.debug("another secret")
        logger.debug(secret_dict)
    assert "supersecret" not in caplog.text
    assert "another secret" not in caplog.text
    assert "secret_val" not in caplog.text
    assert "This should be displayed" in caplog.text


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://acme.okta.com/home/amazon_aws/0oa1b2c3d4/272", True),
        ("https://acme.okta.com/app/amazon_aws/exk1/sso/saml", True),
        ("https://acme.okta.com/", False),
        ("https://acme.okta.com", False),
        ("http://acme.okta.com/home/amazon_aws/0oa1b2c3d4/272", False),
        ("acme.okta.com/home/amazon_aws/0oa1b2c3d4/272", False),
        ("", False),
        (None, False),
    ],
)
def test_validate_app_url(url, expected):
    """Test whether the application URL is validated correctly."""
    from saml2aws import user

    assert user.validate_app_url(url) is expected


def test_process_environment(monkeypatch):
    """Test whether environment variables are interpreted correctly."""
    from saml2aws import user

    valid_keys = dict(
        SAML2AWS_USER_LOGLEVEL="pytest",
        SAML2AWS_IDP_USERNAME="pytest",
        SAML2AWS_IDP_MFA_RESPONSE="123456",
        SAML2AWS_IDP_DISABLE_SESSIONS="true",
    )
    invalid_keys = dict(SAML2AWS_USER_PYTEST_EXPECTED_FAILURE="pytest_expected_failure")

    monkeypatch.setattr(os, "environ", valid_keys)
    ret = user.process_environment()
    assert ret.idp["username"] == "pytest"
    assert ret.idp["mfa_response"] == "123456"
    assert ret.idp["disable_sessions"] == "true"
    assert ret.user["loglevel"] == "pytest"
    assert "123456" in user.mask_items

    monkeypatch.setattr(os, "environ", invalid_keys)
    with pytest.raises(SystemExit) as err:
        user.process_environment()
    assert err.value.code == 1


def test_process_arguments():
    """Test whether arguments are set correctly."""
    from argparse import Namespace

    from saml2aws import user

    valid_settings = dict(idp_username="pytest", idp_password="%pytest_!&%password^")
    invalid_settings = dict(pytest_expected_failure="pytest_failure", version=False)
    args = {**valid_settings, **invalid_settings}
    ret = user.process_arguments(Namespace(**args))

    # Make sure that the arguments we passed are interpreted
    assert ret.idp["username"] == "pytest"
    assert ret.idp["password"] == "%pytest_!&%password^"
    # Make sure that incorrect arguments are not passed down to the Config object.
    assert "pytest" not in ret.__dict__
    assert "%pytest_!&%password^" in user.mask_items


def test_parse_cli_args():
    """Test that arguments are mapped to configuration keys."""
    from saml2aws import user

    args = user.parse_cli_args(
        [
            "--url",
            "https://acme.okta.com/home/amazon_aws/0oa1/272",
            "--username",
            "pytest",
            "--mfa",
            "OKTA PUSH",
            "--disable-remember-device",
            "-l",
            "debug",
        ]
    )
    assert args.idp_url == "https://acme.okta.com/home/amazon_aws/0oa1/272"
    assert args.idp_username == "pytest"
    assert args.idp_mfa == "OKTA PUSH"
    assert args.idp_disable_remember_device is True
    assert args.idp_disable_sessions is False
    assert args.user_loglevel == "DEBUG"
    assert args.version is False

    with pytest.raises(SystemExit):
        user.parse_cli_args(["--provider", "pytest"])


def test_get_submodules_names():
    """Test whether submodules are retrieves correctly."""
    from saml2aws import user

    ret = user.get_submodule_names()
    assert "__main__" in ret
    assert "okta" in ret


def test_process_interactive_input(mocker):
    """Test interactive input processor."""
    from saml2aws import user
    from saml2aws.config import Config

    # Check that a good object retrieves an interactive password
    mocker.patch("saml2aws.user.tty_assertion", return_value=True)
    mocker.patch("saml2aws.user.getpass", return_value="%pytest_!&%password^")

    pytest_config = Config()
    pytest_config.idp["url"] = "https://acme.okta.com/home/amazon_aws/0oa1/272"
    pytest_config.idp["username"] = "pytest"
    ret = user.process_interactive_input(pytest_config)
    pytest_config.update(ret)
    assert pytest_config.idp["password"] == "%pytest_!&%password^"

    # Check that a missing URL and username are asked for
    mock_url = mocker.patch("saml2aws.user.get_url", return_value="https://acme.okta.com/app")
    mock_username = mocker.patch("saml2aws.user.get_username", return_value="pytest_user")
    pytest_config.idp["url"] = None
    pytest_config.idp["username"] = ""
    ret = user.process_interactive_input(pytest_config)
    assert ret.idp["url"] == "https://acme.okta.com/app"
    assert ret.idp["username"] == "pytest_user"
    mock_url.assert_called_once()
    mock_username.assert_called_once()

    # Check that quiet mode does not retrieve a username
    pytest_config.user["quiet"] = True
    pytest_config.idp["username"] = ""
    ret = user.process_interactive_input(pytest_config)
    pytest_config.update(ret)
    assert pytest_config.idp["username"] == ""

    # Check that a bad object raises an exception
    with pytest.raises(AttributeError) as error:
        assert user.process_interactive_input({"pytest": "pytest"}) == error


@pytest.mark.parametrize(
    "config,expected",
    [
        (
            {
                "idp": {
                    "url": "https://acme.okta.com/home/amazon_aws/0oa1/272",
                    "username": "pytest",
                    "password": "pytest",
                }
            },
            [],
        ),
        (
            {"idp": {"username": "pytest", "password": "pytest"}},
            ["Application URL must be defined"],
        ),
        (
            {
                "idp": {
                    "url": "https://acme.okta.com",
                    "username": "",
                    "password": "",
                    "mfa_attempts": 0,
                }
            },
            [
                "Username not set",
                "Password not set",
                "Application URL https://acme.okta.com is not valid",
                "MFA attempts must be at least 1",
            ],
        ),
        (
            {
                "user": {"quiet": True},
                "idp": {
                    "url": "https://acme.okta.com/home/amazon_aws/0oa1/272",
                    "username": "pytest",
                    "password": "pytest",
                    "mfa_response": "123456",
                },
            },
            ["MFA Method not set"],
        ),
        (
            {
                "idp": {
                    "provider": "pytest",
                    "url": "https://acme.okta.com/home/amazon_aws/0oa1/272",
                    "username": "pytest",
                    "password": "pytest",
                }
            },
            ["Identity provider pytest is not supported"],
        ),
    ],
)
def test_validate_configuration(config, expected):
    """Test configuration validator."""
    from saml2aws import user
    from saml2aws.config import Config

    pytest_config = Config(**config)
    assert user.validate_configuration(pytest_config) == expected


def test_sanitize_config_values():
    """Test that values read from the environment are cast."""
    from saml2aws import user
    from saml2aws.config import Config

    pytest_config = Config(
        user={"quiet": "yes"},
        idp={
            "provider": "OKTA",
            "disable_sessions": "true",
            "disable_remember_device": "0",
            "mfa_attempts": "5",
            "poll_interval": "0.5",
            "poll_timeout": "pytest",
        },
    )
    ret = user.sanitize_config_values(pytest_config)
    assert ret.user["quiet"] is True
    assert ret.idp["provider"] == "okta"
    assert ret.idp["disable_sessions"] is True
    assert ret.idp["disable_remember_device"] is False
    assert ret.idp["mfa_attempts"] == 5
    assert ret.idp["poll_interval"] == 0.5
    assert ret.idp["poll_timeout"] == 120


def test_select_preferred_mfa_index(mocker, sample_json_response):
    """Test whether the function returns the position of the factor picked."""
    from saml2aws.factors import parse_factors
    from saml2aws.user import select_preferred_mfa_index

    factor_list = parse_factors(sample_json_response["okta_response_mfa"])
    mocker.patch("saml2aws.user.collect_integer", return_value=1)
    assert select_preferred_mfa_index(factor_list) == 1

    # Only a subset of the factors may be offered
    mocker.patch("saml2aws.user.collect_integer", return_value=0)
    assert select_preferred_mfa_index(factor_list[2:]) == 2


def test_select_preferred_mfa_index_output(capsys, mocker, sample_json_response):
    """Test whether the function gives correct output."""
    from saml2aws.config import config
    from saml2aws.factors import parse_factors
    from saml2aws.user import select_preferred_mfa_index

    # For this test, ensure that quiet is never true
    config.user["quiet"] = False
    factor_list = parse_factors(sample_json_response["okta_response_mfa"])

    mocker.patch("saml2aws.user.collect_integer", return_value=1)
    select_preferred_mfa_index(factor_list)
    lines = capsys.readouterr().out.splitlines()
    assert lines[1] == "Select your preferred MFA method and press Enter:"
    assert lines[2].startswith("[0]  OKTA PUSH")
    assert "Redmi 6 Pro" in lines[2]
    assert lines[2].endswith("Id: opfrar9yi4bKJNH2WEWQ0x8")
    assert lines[3].startswith("[1]  GOOGLE TOKEN:SOFTWARE:TOTP")
    assert "pytest@acme.org" in lines[3]
    assert lines[4].startswith("[2]  FIDO WEBAUTHN")
    assert "Yubikey5" in lines[4]


def test_get_passcode(mocker):
    """Test that the prompt depends on the factor."""
    from saml2aws import user
    from saml2aws.factors import build_factor

    mocker.patch("saml2aws.user.tty_assertion", return_value=True)
    mock_input = mocker.patch("saml2aws.user.input", return_value=" 123456 ", create=True)
    totp = build_factor({"factorType": "token:software:totp", "provider": "OKTA"})
    assert user.get_passcode(totp) == "123456"
    mock_input.assert_called_with("Enter your verification code: ")

    question = build_factor(
        {"factorType": "question", "provider": "OKTA", "profile": {"questionText": "Pet?"}}
    )
    user.get_passcode(question)
    mock_input.assert_called_with("Pet?: ")


def test_display_version(capsys):
    """Test that the version of the tool and its libraries are shown."""
    from saml2aws import __version__
    from saml2aws import user
    from saml2aws.config import config

    config.user["quiet"] = False
    user.display_version()
    out = capsys.readouterr().out
    assert out.startswith(f"saml2aws/{__version__} ")
    assert "requests/" in out
    assert "bs4/" in out


def test_cmd_interface(mocker, monkeypatch, capsys):
    """Test that the assertion is printed after a login."""
    from saml2aws import user
    from saml2aws.config import config

    monkeypatch.setattr(os, "environ", {})
    mocker.patch.object(config, "idp", dict(config.get_defaults()["idp"]))
    mocker.patch.object(config, "user", dict(config.get_defaults()["user"]))
    mock_provider = mocker.patch("saml2aws.user.get_provider")
    mock_provider.return_value.authenticate.return_value = "UFlURVNUX1NBTUw="

    user.cmd_interface(
        [
            "--url",
            "https://acme.okta.com/home/amazon_aws/0oa1/272",
            "--username",
            "pytest",
            "--password",
            "pytest_password",
            "--quiet",
        ]
    )
    assert capsys.readouterr().out == "UFlURVNUX1NBTUw=\n"

    login_details = mock_provider.return_value.authenticate.call_args[0][0]
    assert login_details.username == "pytest"
    assert login_details.url == "https://acme.okta.com/home/amazon_aws/0oa1/272"
    assert mock_provider.call_args[0][0] == "okta"
    # Quiet mode never prompts
    assert "passcode_callback" not in mock_provider.call_args[1]
    user.setup_logging({"loglevel": "INFO"})


def test_cmd_interface_error(mocker, monkeypatch):
    """Test that login errors exit with an error code."""
    from saml2aws import user
    from saml2aws.config import config
    from saml2aws.errors import InvalidCredentials

    monkeypatch.setattr(os, "environ", {})
    mocker.patch.object(config, "idp", dict(config.get_defaults()["idp"]))
    mocker.patch.object(config, "user", dict(config.get_defaults()["user"]))
    mock_provider = mocker.patch("saml2aws.user.get_provider")
    mock_provider.return_value.authenticate.side_effect = InvalidCredentials("E0000004")

    with pytest.raises(SystemExit) as err:
        user.cmd_interface(
            [
                "--url",
                "https://acme.okta.com/home/amazon_aws/0oa1/272",
                "--username",
                "pytest",
                "--password",
                "pytest_password",
                "--quiet",
            ]
        )
    assert err.value.code == 1
    user.setup_logging({"loglevel": "INFO"})


def test_cmd_interface_invalid_configuration(mocker, monkeypatch):
    """Test that an incomplete configuration exits before logging in."""
    from saml2aws import user
    from saml2aws.config import config

    monkeypatch.setattr(os, "environ", {})
    mocker.patch.object(config, "idp", dict(config.get_defaults()["idp"]))
    mocker.patch.object(config, "user", dict(config.get_defaults()["user"]))
    mock_provider = mocker.patch("saml2aws.user.get_provider")

    with pytest.raises(SystemExit) as err:
        user.cmd_interface(["--username", "pytest", "--quiet"])
    assert err.value.code == 1
    mock_provider.assert_not_called()
    user.setup_logging({"loglevel": "INFO"})
