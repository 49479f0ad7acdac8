"""
Setup script for codememory.

CodeMemory is a spaced-repetition review engine for programming concepts:

1. FSRS-5 scheduling - per-item stability, difficulty and due dates
2. Dual-mode progress - device-local SQLite or an account database
3. Progress summaries - concept mastery, daily streaks, learner stats

The 'codememory' command is the primary entry point; the same service is
exposed over HTTP with 'codememory serve'.
"""

from setuptools import find_packages, setup

setup(
    name="codememory",
    version="1.0.0",
    description="Spaced-repetition review engine with FSRS scheduling, mastery and streaks",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="CodeMemory",
    packages=find_packages(include=["codememory", "codememory.*"]),
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "hypothesis>=6.80.0",
            # fastapi.testclient
            "httpx>=0.25.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "codememory=codememory.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition fsrs cli education",
)
