"""Package setup for taikun-reconciler."""

from setuptools import setup, find_packages

setup(
    name="taikun-reconciler",
    version="0.1.0",
    description="Converge Taikun platform entities to a desired state",
    packages=find_packages(include=["taikun_reconciler", "taikun_reconciler.*"]),
    python_requires=">=3.9",
    install_requires=[
        "httpx>=0.25.0",
        "pydantic[email]>=2.5.0",
        "typer>=0.9.0",
        "rich>=13.0.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": ["pytest>=7.4.0"],
    },
    entry_points={
        "console_scripts": [
            "taikun-reconcile=taikun_reconciler.cli:app",
        ],
    },
)
