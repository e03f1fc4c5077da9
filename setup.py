"""Setup configuration for guildconf."""

from setuptools import setup, find_packages

setup(
    name="guildconf",
    version="0.0.1",
    description="Persistent per-guild configuration store for Discord bots",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord",
        "aiosqlite",
        "jsonschema",
        "PyYAML",
        "python-dotenv",
        "prompt_toolkit",
    ],
    extras_require={
        "test": [
            "pytest>=8,<9",
            "pytest-asyncio",
        ],
    },
)
