"""
Setup script for lingua-progression.

Lingua is the adaptive learning progression engine of a language-learning
platform. It runs the practice loop:

1. Picker - choose the next submodule and interaction type
2. Generation - synthesize a question within structural constraints
3. Marking - grade the learner's answer
4. Statistics - record the attempt and aggregate performance

The 'lingua' command provides catalog validation and the API server.
"""

from setuptools import find_packages, setup

setup(
    name="lingua-progression",
    version="0.1.0",
    description="Adaptive learning progression engine for language practice",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Lingua",
    packages=find_packages(include=["lingua", "lingua.*"]),
    py_modules=["config"],
    package_data={"lingua.registry": ["definitions/modules/*.json"]},
    include_package_data=True,
    python_requires=">=3.10",
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
        "httpx>=0.25.0",
        # API
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "lingua=lingua.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Web Environment",
        "Framework :: FastAPI",
        "Intended Audience :: Developers",
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
    keywords="language-learning adaptive cefr education",
)
