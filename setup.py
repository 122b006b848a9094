"""Setup file for development installation."""

from setuptools import setup, find_packages

setup(
    name="finflow-api",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.100",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "httpx>=0.25",
        "structlog>=23.1",
        "prometheus-client>=0.17",
        "opentelemetry-instrumentation-fastapi>=0.40b0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.21",
        ],
    },
)
