#!/usr/bin/env python
from setuptools import setup

setup(
    name="ReoChat",
    version="0.1.0",
    description="A minimal single-room desktop client for Matrix",
    packages=['reochat'],
    scripts=['reochat.py'],
    python_requires=">=3.8",
    install_requires=[
        "matrix-nio",
        "aiohttp",
        "python-dateutil",
    ],
    extras_require={
        "e2e": ["matrix-nio[e2e]"],
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
)
