"""
Setup script for arvil-drills.

Arvil is the local-first training core for policing recall drills
(registration plates, scene snapshots, phonetic transcription):

1. Spaced repetition - missed facts are re-tested on an SM-2 schedule
2. Progress tracking - drill results, streaks, competency tiers, ranks
3. Portable data - everything in one SQLite file, exportable as JSON

The 'arvil' command is the terminal front end.
"""

from setuptools import find_packages, setup

setup(
    name="arvil-drills",
    version="1.0.0",
    description="Spaced-repetition core for policing recall drills",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Arvil",
    packages=find_packages(include=["arvil", "arvil.*"]),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
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
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "arvil=arvil.training.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition sm2 drills memory training",
)
