"""
Setup configuration for PACD (Post-acute Care Dashboard Pipeline) package.
"""
from setuptools import setup, find_packages

with open("PACD/README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="pacd",
    version="1.0.0",
    author="Analytics Team",
    description="Post-acute Care Dashboard Pipeline for SNF, LTC and IPR claims data",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["PACD", "PACD.*"]),
    python_requires=">=3.8",
    install_requires=[
        "snowflake-snowpark-python>=1.34.0",
        "cryptography>=3.4.8",
        "pandas>=1.5.0,<3",
        "numpy>=1.23.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "pacd-pipeline=PACD.pipeline:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Healthcare Industry",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
