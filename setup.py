"""Setup script for the Multi-Stock GRU Direction Forecaster."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="multistock-gru-forecast",
    version="0.1.0",
    author="Mabunda Hlulani",
    author_email="213067605@tut4life.ac.za",
    description="GRU model predicting next-3-day up/down moves for a panel of stocks",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["stockgru", "stockgru.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Financial and Insurance Industry",
        "Topic :: Office/Business :: Financial :: Investment",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "dev": [
            "black>=23.7.0",
            "flake8>=6.1.0",
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "httpx>=0.24.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "stockgru-api=stockgru.api.server:main",
        ],
    },
)
