"""
Setup script for oorep-seed.

oorep-seed loads the OOREP homeopathic repertory into the clinic
knowledge base. It serves three roles:

1. Seeder - Extract OOREP from a SQL dump or PostgreSQL and load MongoDB
2. Verifier - Compare seeded volumes with the published OOREP counts
3. Cleaner - Remove seeded data before a fresh load

The 'oorep-seed' command is the only entry point.
"""

from setuptools import find_packages, setup

setup(
    name="oorep-seed",
    version="1.0.0",
    description="Idempotent OOREP repertory seeding for the clinic knowledge base",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Source database
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
        # Target store
        "pymongo>=4.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "oorep-seed=oorep_seed.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Healthcare Industry",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
    ],
    keywords="oorep homeopathy repertory etl mongodb",
)
