# vim: set filetype=python ts=4 sw=4
# -*- coding: utf-8 -*-
"""Helper module for configuration, logging and user interaction."""
import argparse
import builtins
from getpass import getpass
import logging
import os
from pathlib import Path
from pkgutil import iter_modules
import platform
import re
import sys
from urllib.parse import urlparse

from bs4 import __version__ as __bs4_version__  # type: ignore (bs4 does not have PEP 561 support)
import requests
from saml2aws import __title__
from saml2aws import __version__
from saml2aws import factors
from saml2aws.config import Config
from saml2aws.config import config
from saml2aws.errors import Saml2AwsError
from saml2aws.provider import available_providers
from saml2aws.provider import get_provider
from saml2aws.provider import LoginDetails

# Unfortunately, readline is only available in non-Windows systems. There is no substitution.
try:
    import readline  # noqa: F401
except ModuleNotFoundError:
    pass

logger = logging.getLogger(__name__)

mask_items = []

_boolean_options = dict(user=("quiet",), idp=("disable_sessions", "disable_remember_device"))
_integer_options = dict(idp=("mfa_attempts", "poll_timeout", "http_timeout"))
_float_options = dict(idp=("poll_interval",))


def cmd_interface(args):
    """Authenticate to the identity provider, and print the SAML assertion."""
    args = parse_cli_args(args)

    # Early logging, in case the user requests debugging via env/CLI
    setup_early_logging(args)

    # Set some required initial values
    process_options(args)

    # Late logging (default)
    setup_logging(config.user)

    # Validate configuration
    message = validate_configuration(config)
    if message:
        quiet_msg = ""
        if config.user["quiet"] is not False:
            quiet_msg = " to run in quiet mode"
        logger.error(
            f"Could not validate configuration{quiet_msg}: {'. '.join(message)}. "
            "Please check your settings, and try again."
        )
        sys.exit(1)

    login_details = LoginDetails(
        username=config.idp["username"],
        password=config.idp["password"],
        url=config.idp["url"],
        mfa_token=config.idp["mfa_response"],
    )

    callbacks = dict()
    if config.user["quiet"] is not True:
        callbacks["challenge_callback"] = display_number_challenge
        callbacks["passcode_callback"] = get_passcode
        callbacks["factor_selector"] = select_preferred_mfa_index

    try:
        idp = get_provider(config.idp["provider"], config, **callbacks)
        assertion = idp.authenticate(login_details)
    except Saml2AwsError as err:
        logger.error(f"{type(err).__name__}: {err}")
        sys.exit(1)

    sys.stdout.write(f"{assertion}\n")


class MaskLoggerSecret(logging.Filter):
    """Masks secrets in logger messages."""

    def __init__(self):
        """Initialize filter."""
        logging.Filter.__init__(self)

    def filter(self, record):
        """Apply filter on logger messages."""
        for secret in mask_items:
            if not isinstance(secret, str):
                secret = str(secret)
            if not isinstance(record.msg, str):
                record.msg = str(record.msg)
            record.msg = record.msg.replace(secret, "*****")
        return True


def parse_cli_args(args):
    """Parse command line arguments.

    :return: args parse object
    """
    parser = argparse.ArgumentParser(
        prog=__title__,
        description="Logs in to a SAML identity provider and prints the SAML assertion.",
    )
    parser.add_argument("--version", action="store_true", help="Displays version and exit")
    parser.add_argument(
        "--provider",
        dest="idp_provider",
        choices=available_providers(),
        help="Identity provider to log in to. Defaults to okta.",
    )
    parser.add_argument(
        "--url",
        dest="idp_url",
        help="Application embed link, e.g. https://acme.okta.com/home/amazon_aws/0oa1/272. "
        "You can also use the SAML2AWS_IDP_URL environment variable.",
    )
    parser.add_argument(
        "--username",
        dest="idp_username",
        help="username to log in with. You can "
        "also use the SAML2AWS_IDP_USERNAME environment variable.",
    )
    parser.add_argument(
        "--password",
        dest="idp_password",
        help="password to log in with. You "
        "can also use the SAML2AWS_IDP_PASSWORD environment variable.",
    )
    parser.add_argument(
        "--mfa",
        dest="idp_mfa",
        help="Sets the MFA method, e.g. 'OKTA PUSH' or 'GOOGLE TOKEN:SOFTWARE:TOTP'. You "
        "can also use the SAML2AWS_IDP_MFA environment variable.",
    )
    parser.add_argument(
        "--mfa-response",
        dest="idp_mfa_response",
        help="Sets the MFA response to a challenge. You "
        "can also use the SAML2AWS_IDP_MFA_RESPONSE environment variable.",
    )
    parser.add_argument(
        "--disable-sessions",
        dest="idp_disable_sessions",
        action="store_true",
        default=False,
        help="Do not reuse an existing session, nor remember this device.",
    )
    parser.add_argument(
        "--disable-remember-device",
        dest="idp_disable_remember_device",
        action="store_true",
        default=False,
        help="Do not ask the identity provider to remember this device.",
    )
    parser.add_argument(
        "--loglevel",
        "-l",
        type=lambda s: s.upper(),
        dest="user_loglevel",
        choices=["DEBUG", "INFO", "WARN", "ERROR"],
        help="[DEBUG|INFO|WARN|ERROR], default loglevel is INFO.",
    )
    parser.add_argument(
        "--log-output-file",
        dest="user_log_output_file",
        help="Optional file to log output to.",
    )
    parser.add_argument(
        "--quiet",
        dest="user_quiet",
        action="store_true",
        default=False,
        help="Suppress output, and never prompt.",
    )

    parsed_args = parser.parse_args(args)

    return parsed_args


def get_submodule_names():
    """Inspect the current module and find any submodules.

    :return: List of submodule names
    """
    package = Path(__file__).resolve(strict=True)
    submodules = [x.name for x in iter_modules([str(package.parent)])]
    return submodules


def setup_early_logging(args):
    """Do a best-effort attempt to enable early logging.

    :param args: list of arguments to parse
    :return: dict with values set
    """
    # Get some sane defaults
    early_logging = config.get_defaults()["user"].copy()

    if "SAML2AWS_USER_LOGLEVEL" in os.environ:
        early_logging["loglevel"] = os.environ["SAML2AWS_USER_LOGLEVEL"]
    if "SAML2AWS_USER_LOG_OUTPUT_FILE" in os.environ:
        early_logging["log_output_file"] = os.environ["SAML2AWS_USER_LOG_OUTPUT_FILE"]

    if "user_loglevel" in args and args.user_loglevel:
        early_logging["loglevel"] = args.user_loglevel
    if "user_log_output_file" in args and args.user_log_output_file:
        early_logging["log_output_file"] = args.user_log_output_file

    setup_logging(early_logging)
    return early_logging


def setup_logging(conf):
    """Set logging level.

    :param conf: dictionary with config
    :return: loglevel name
    """
    root_logger = logging.getLogger()
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s |%(name)s %(funcName)s():%(lineno)i| %(message)s"
    )
    handler = logging.StreamHandler()

    if "log_output_file" in conf and conf["log_output_file"]:
        handler = logging.FileHandler(conf["log_output_file"])
    handler.setFormatter(formatter)

    # Set a reasonable default logging format.
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.addFilter(MaskLoggerSecret())

    # Pre-create a log handler for each submodule
    # with the same format and level. Settings are
    # inherited from the root logger.
    submodules = [f"{__title__}.{x}" for x in get_submodule_names()]
    if "loglevel" in conf:
        conf["loglevel"] = conf["loglevel"].upper()
        for submodule in submodules:
            submodule_logger = logging.getLogger(submodule)
            submodule_logger.addFilter(MaskLoggerSecret())
            try:
                submodule_logger.setLevel(conf["loglevel"])
            except ValueError as err:
                submodule_logger.warning(f"{err}. Please check your configuration and try again.")
                conf["loglevel"] = config.get_defaults()["user"]["loglevel"]
                submodule_logger.setLevel(conf["loglevel"])
    loglevel = logging.getLogger(submodules[0]).getEffectiveLevel()
    return loglevel


def print(args):
    """Print only if not in quiet mode. Does not affect logging."""
    if config.user["quiet"] is not True:
        builtins.print(args)
    return args


def add_sensitive_value_to_be_masked(value, key=None):
    """Add value to be masked from the logs.

    If a key is passed only add it if the key refers to a secret element.
    """
    sensitive_keys = ("password", "mfa_response", "sessionToken", "stateToken")
    if not value or value in mask_items:
        return
    if key is None or key in sensitive_keys:
        mask_items.append(value)


def display_version():
    """Print program version and exit."""
    python_version = platform.python_version()
    (system, _, release, _, _, _) = platform.uname()
    logger.debug(f"Display version: {__version__}")
    print(
        f"{__title__}/{__version__} "
        f"Python/{python_version} "
        f"{system}/{release} "
        f"bs4/{__bs4_version__} "
        f"requests/{requests.__version__}"
    )


def display_number_challenge(answer):
    """Show the number to pick in the Okta Verify app."""
    print(f"Number Challenge response is {answer}")


def select_preferred_mfa_index(factor_list):
    """Show the MFA options to the user, and let them pick one.

    :param factor_list: list of Factor objects
    :return: index of the selected factor in the enrolled factor list
    """
    logger.debug("Show all the MFA options to the users.")
    print("\nSelect your preferred MFA method and press Enter:")

    longest_index = len(str(len(factor_list)))
    longest_identifier = max([len(f.identifier) for f in factor_list])
    longest_name = max([len(f.display_name or f.info) for f in factor_list])

    for i, factor in enumerate(factor_list):
        name = factor.display_name or factor.info
        print(
            f"[{i: >{longest_index}}]  "
            f"{factor.identifier: <{longest_identifier}}  "
            f"{name: <{longest_name}}  "
            f"Id: {factor.id or 'Not presented'}"
        )

    user_input = collect_integer(len(factor_list))

    return factor_list[user_input].index


def get_passcode(factor):
    """Ask the user for the code or answer of a factor.

    :param factor: Factor object being verified
    :return: string entered by the user
    """
    logger.debug(f"Getting verification code for {factor.identifier} from user.")
    prompt = "Enter your verification code: "
    if factor.verification == factors.ANSWER:
        prompt = f"{factor.info}: "
    code = get_input(prompt).strip()
    add_sensitive_value_to_be_masked(code)
    return code


def process_arguments(args):
    """Process command-line arguments.

    :param args: argparse object
    :return: Config object with configuration values
    """
    res = dict()
    pattern = re.compile(r"^(.*?)_(.*)")

    sections = config.get_defaults().keys()
    for key, val in vars(args).items():
        match = re.search(pattern, key.lower())
        if match:
            if match.group(1) not in sections:
                continue
            if match.group(1) not in res:
                res[match.group(1)] = dict()
            if val:
                res[match.group(1)][match.group(2)] = val
                add_sensitive_value_to_be_masked(val, match.group(2))
    logger.debug(f"Found arguments: {res}")

    try:
        config_args = Config(**res)

    except (AttributeError, KeyError, ValueError) as err:
        logger.error(
            f"Command line arguments not correct: {err}"
            ". This should not happen, please contact the package maintainers."
        )
        sys.exit(1)
    return config_args


def process_environment(prefix=__title__):
    """Process environment variables.

    :return: Config object with configuration values.
    """
    res = dict()
    pattern = re.compile(rf"^({prefix})_(.*?)_(.*)")
    # Here, group(1) is the prefix variable, group(2) is the dictionary key,
    # and group(3) the configuration element.
    for key, val in os.environ.items():
        match = re.search(pattern, key.lower())
        if match:
            if match.group(2) not in res:
                res[match.group(2)] = dict()
            if val:
                res[match.group(2)][match.group(3)] = val
                add_sensitive_value_to_be_masked(val, match.group(3))
    logger.debug(f"Found environment variables: {res}")

    try:
        config_env = Config(**res)

    except (AttributeError, KeyError, ValueError) as err:
        logger.error(
            f"The environment variables are incorrectly set: {err}"
            ". Please check your settings and try again."
        )
        sys.exit(1)
    return config_env


def process_interactive_input(config, skip_password=False):
    """
    Request input interactively for elements that are not present.

    :param config: Config object with some values set.
    :param skip_password: Whether or not ask the user for a password.
    :returns: Config object with necessary values set.
    """
    # Return quickly if the user attempts to run in quiet (non-interactive) mode.
    if config.user["quiet"] is True:
        logger.debug(f"Skipping interactive config: quiet mode is {config.user['quiet']}")
        return Config()

    res = dict(idp=dict())
    if not validate_app_url(config.idp["url"]):
        res["idp"]["url"] = get_url()
    if not config.idp["username"]:
        res["idp"]["username"] = get_username()
    if not config.idp["password"] and not skip_password:
        logger.debug("No password set, will try to get one interactively")
        res["idp"]["password"] = get_password()
        add_sensitive_value_to_be_masked(res["idp"]["password"])

    config_int = Config(**res)
    logger.debug(f"Interactive configuration is: {config_int}")
    return config_int


def validate_app_url(input_url=None):
    """Validate whether a given URL looks like an application embed link.

    :param input_url: string
    :return: bool. True if valid, False otherwise
    """
    logger.debug(f"Will try to match '{input_url}' to a valid URL")
    if not input_url:
        return False

    url = urlparse(input_url)
    logger.debug(f"URL parsed as {url}")
    if url.scheme == "https" and url.netloc and url.path not in ("", "/"):
        return True

    logger.debug(f"{url} does not look like a valid match.")
    return False


def get_url():
    """Get the application embed link from the user.

    :return: string with sanitized value.
    """
    message = "Application URL. E.g. https://acme.okta.com/home/amazon_aws/0oa1b2c3d4/272: "
    res = ""

    while res == "":
        user_data = get_input(prompt=message)
        user_data = user_data.strip()
        if not user_data.startswith("https://"):
            user_data = f"https://{user_data}"
        if validate_app_url(user_data):
            res = user_data
        else:
            print("Invalid input, try again.")
    logger.debug(f"App URL is: {res}")
    return res


def get_username():
    """Get username from user.

    :return: string with sanitized value.
    """
    message = "Organization username. E.g. jane.doe@acme.com: "
    res = ""
    while res == "":
        user_data = get_input(prompt=message)
        user_data = user_data.strip()
        if user_data != "":
            res = user_data
        else:
            print("Invalid input, try again.")
    logger.debug(f"Username is {res}")
    return res


def get_password():
    """Set the password interactively.

    :return: password
    """
    res = ""
    logger.debug("Set password.")

    tty_assertion()
    while res == "":
        password = getpass()
        res = password
        logger.debug("password set interactively")
    return res


def check_within_range(user_input, valid_range):
    """Validate the user input is within the range of the presented menu.

    :param user_input: integer-validated user input.
    :param valid_range: the valid range presented on the user's menu.
    :return range_validation: true or false
    """
    range_validation = False
    if int(user_input) in range(0, valid_range):
        range_validation = True
    else:
        logger.debug(f"Valid range is {valid_range}")
        logger.error("Value is not in within the selection range.")
    return range_validation


def check_integer(value):
    """Validate integer.

    :param value: value to be validated.
    :return: True when the number is a positive integer, false otherwise.
    """
    integer_validation = False
    if str(value).isdigit():
        integer_validation = True
    else:
        logger.error("Please enter a valid integer.")

    return integer_validation


def validate_input(value, valid_range):
    """Validate user input is an integer and within menu range.

    :param value: user input
    :param valid_range: valid range based on how many menu options available to user.
    """
    integer_validation = check_integer(value)
    if integer_validation and valid_range:
        integer_validation = check_within_range(value, valid_range)
    return integer_validation


def tty_assertion():
    """Ensure that a TTY is present."""
    try:
        assert os.isatty(sys.stdin.fileno()) is True
    except (AttributeError, AssertionError, EOFError, OSError, RuntimeError):
        logger.error(
            "sys.stdin is not available, and interactive invocation requires stdin to be present. "
            "Please check the --help argument and documentation for more details.",
        )
        sys.exit(1)


def get_input(prompt="-> "):
    """Collect user input.

    :param prompt: optional string with prompt.
    :return user_input: raw from user.
    """
    tty_assertion()

    user_input = input(f"{prompt}")
    logger.debug(f"User input: {user_input}")

    return user_input


def collect_integer(valid_range=0):
    """Collect input from user.

    Prompt the user for input. Validate it and cast to integer.

    :param valid_range: number of menu options available to user.
    :return user_input: validated, casted integer from user.
    """
    user_input = None
    while True:
        user_input = get_input()
        valid_input = validate_input(user_input, valid_range)
        logger.debug(f"User input validation status is {valid_input}")
        if valid_input:
            user_input = int(user_input)
            break
    return user_input


def process_options(args):
    """Collect all user-specific credentials and config params."""
    if args.version:
        display_version()
        sys.exit(0)

    # 1: read ENV
    config_env = process_environment()

    # 2: override with args
    config_args = process_arguments(args)

    config.update(config_env)
    config.update(config_args)
    sanitize_config_values(config)

    # 3: Get missing data from the user, if necessary
    config_int = process_interactive_input(config)
    config.update(config_int)

    logger.debug(f"Final configuration is {config}")


def validate_basic_configuration(config):
    """Ensure that basic configuration values are sane.

    :param config: Config element with final configuration.
    :return: message with validation issues.
    """
    message = []
    if not config.idp["username"]:
        message.append("Username not set")
    if not config.idp["password"]:
        message.append("Password not set")
    if not config.idp["url"]:
        message.append("Application URL must be defined")
    elif not validate_app_url(config.idp["url"]):
        message.append(f"Application URL {config.idp['url']} is not valid")
    if config.idp["provider"] not in available_providers():
        message.append(f"Identity provider {config.idp['provider']} is not supported")
    if config.idp["mfa_attempts"] < 1:
        message.append("MFA attempts must be at least 1")

    return message


def validate_quiet_configuration(config):
    """Ensure that minimum configuration settings for running quietly are met.

    :param config: Config element with final configuration.
    :return: message with validation issues.
    """
    message = []
    if "quiet" in config.user and config.user["quiet"] is not False:
        if config.idp["mfa_response"] and not config.idp["mfa"]:
            message.append("MFA Method not set")

    return message


def validate_configuration(config):
    """
    Ensure that configuration settings are appropriate before contacting the provider.

    :param config: Config element with final configuration.
    :return: message with validation issues.
    """
    messages = validate_basic_configuration(config) + validate_quiet_configuration(config)
    return messages


def to_bool(value):
    """Convert a configuration value to a boolean."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def sanitize_config_values(config):
    """Adjust values that may need to be corrected.

    Values read from the environment are strings, and are cast here.
    :param config: Config object to adjust
    :returns: modified object.
    """
    casts_list = ((_boolean_options, to_bool), (_integer_options, int), (_float_options, float))
    for casts, func in casts_list:
        for section, keys in casts.items():
            for key in keys:
                value = getattr(config, section)[key]
                try:
                    getattr(config, section)[key] = func(value)
                except (TypeError, ValueError):
                    logger.warning(
                        f"Invalid value '{value}' for {section}_{key}, using the default."
                    )
                    getattr(config, section)[key] = config.get_defaults()[section][key]

    if config.idp["provider"]:
        config.idp["provider"] = str(config.idp["provider"]).lower()
    return config
