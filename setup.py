#!/usr/bin/env python

from setuptools import setup, find_namespace_packages

setup(
    name="ssdp-browser",
    version="1.0.0",
    description="SSDP service browser for discovering UPnP devices and services",
    packages=find_namespace_packages("src", include="upnp.*"),
    package_data={"": ["py.typed"]},
    python_requires=">=3.10",
    install_requires=(
        "psutil",
        "rich",
    ),
    extras_require={
        "test": ["pytest", "pytest-timeout"],
    },
    entry_points={
        "console_scripts": ["ssdp-browse=upnp.ssdp.list_cli:main"],
    },
    package_dir={"": "src"},
)
