#!/usr/bin/env python
# vim: set filetype=python ts=4 sw=4
# -*- coding: utf-8 -*-
"""`saml2aws` logs in to a SAML identity provider and prints the assertion."""

from codecs import open
import datetime
import os

from setuptools import find_packages
from setuptools import setup

here = os.path.abspath(os.path.dirname(__file__))

with open(os.path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

with open(os.path.join(here, "requirements.txt")) as f:
    required = [line for line in f.read().splitlines() if line and not line.startswith("#")]

about = {}
with open(os.path.join(here, "saml2aws", "__init__.py")) as f:
    for line in f:
        if line.startswith("__"):
            split_line = line.strip().split(" = ")
            about[split_line[0]] = "".join(split_line[1:]).replace('"', "")

if "DEVBUILD" in os.environ:
    now = datetime.datetime.now()
    about["__version__"] = about["__version__"] + ".dev" + now.strftime("%Y%m%d%H%M%S")

setup(
    name="saml2aws",
    version=about["__version__"],
    description=about["__description__"],
    long_description=long_description,
    long_description_content_type=about["__long_description_content_type__"],
    author=about["__author__"],
    classifiers=[
        "License :: OSI Approved :: Apache Software License",
        "Development Status :: 4 - Beta",
        "Operating System :: OS Independent",
        "Environment :: Console",
        "Programming Language :: Python",
        "Intended Audience :: End Users/Desktop",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords=["okta", "saml", "aws", "mfa"],
    packages=find_packages(exclude=["contrib", "docs", "tests", ".tox"]),
    python_requires=">=3.8",
    license=about["__license__"],
    zip_safe=False,
    install_requires=required,
    extras_require={
        "test": ["pytest", "pytest-mock", "semver"],
    },
    entry_points={
        "console_scripts": ["saml2aws=saml2aws.__main__:main"],
    },
)
