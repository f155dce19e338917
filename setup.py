#!/usr/bin/env python3
"""
hashwatch Setup Script
======================
Allows installation of the hashwatch package.

Usage:
    pip install -e .           # Development install
    pip install -e .[test]     # With test dependencies
    pip install .              # Regular install
"""

from setuptools import setup, find_packages

setup(
    name="hashwatch",
    version="1.0.0",
    packages=find_packages(include=["hashwatch", "hashwatch.*"]),
    python_requires=">=3.10",
    install_requires=[
        "redis>=5.0.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "fakeredis[lua]>=2.20",
        ],
    },
    entry_points={
        "console_scripts": [
            "hashwatch=hashwatch.cli:main",
        ],
    },
)
