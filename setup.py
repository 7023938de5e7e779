#!/usr/bin/env python3
"""
Contact Relay Setup Configuration
Contact form endpoint with validation, rate limiting and email relay
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()


def read_requirements(path):
    with open(path, "r", encoding="utf-8") as fh:
        return [line.strip() for line in fh if line.strip() and not line.startswith("#")]


setup(
    name="contact-relay",
    version="1.0.0",
    description="Contact form submission endpoint with validation, rate limiting and email relay",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["api", "api.*", "core", "core.*", "config", "config.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Framework :: FastAPI",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=read_requirements("config/requirements.txt"),
    extras_require={
        "test": read_requirements("config/requirements-test.txt"),
    },
    include_package_data=True,
    keywords="contact-form email rate-limiting fastapi",
)
