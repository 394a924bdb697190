"""Setup for the stamp-duty webhooks SDK and receiver."""

from setuptools import find_packages, setup

setup(
    name="stampduty-webhooks",
    version="0.1.0",
    description="Stamp-duty platform webhook verification SDK and receiver service",
    package_dir={
        "stampduty_sdk": "packages/sdk-python/stampduty_sdk",
        "stampduty_api": "apps/api/stampduty_api",
    },
    packages=(
        find_packages("packages/sdk-python", exclude=["tests", "tests.*"])
        + find_packages("apps/api", exclude=["tests", "tests.*"])
    ),
    install_requires=[
        "requests>=2.31.0",
        "fastapi>=0.110.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "prometheus-client>=0.19.0",
        "redis>=5.0.0",
        "click>=8.1.0",
        "uvicorn>=0.27.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "httpx>=0.26.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "stampduty-webhooks=stampduty_api.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
