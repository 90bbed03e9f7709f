#!/usr/bin/env python
import codecs
import os.path
import re

from setuptools import find_packages, setup

here = os.path.abspath(os.path.dirname(__file__))


def read(*parts):
    return codecs.open(os.path.join(here, *parts), "r", encoding="utf-8").read()


def find_version(*file_paths):
    version_file = read(*file_paths)
    version_match = re.search(r"^__version__ = ['\"]([^'\"]*)['\"]", version_file, re.M)
    if version_match:
        return version_match.group(1)
    raise RuntimeError("Unable to find version string.")


requires = ["cryptography>=42.0"]

setup(
    name="aws-sdk-core",
    version=find_version("src", "aws_sdk_core", "__init__.py"),
    description=(
        "Request signing, credentials resolution and retry handling for AWS "
        "service clients"
    ),
    long_description=read("README.md"),
    long_description_content_type="text/markdown",
    author="Amazon Web Services",
    keywords="python sdk amazon aws signing credentials retries cloudfront",
    scripts=[],
    package_dir={"": "src"},
    packages=find_packages("src", exclude=["tests*"]),
    include_package_data=True,
    install_requires=requires,
    extras_require={
        "tests": [
            "pytest>=8.0",
            "pytest-asyncio>=0.24",
            "freezegun>=1.4",
        ],
    },
    python_requires=">=3.12",
    license="Apache License 2.0",
    classifiers=[
        "Development Status :: 2 - Pre-Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Natural Language :: English",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Programming Language :: Python :: Implementation :: CPython",
        "Topic :: Software Development :: Libraries",
    ],
)
