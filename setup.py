#!/usr/bin/env python3
"""
Setup script for the Surat Rekomendasi letter engine

Install with:
    pip install -e .

With test tooling:
    pip install -e ".[dev]"
"""

from setuptools import setup, find_namespace_packages
from pathlib import Path

# Read README
readme_path = Path(__file__).parent / "README.md"
long_description = ""
if readme_path.exists():
    long_description = readme_path.read_text(encoding="utf-8")

requirements = [
    "fastapi>=0.109.0",
    "uvicorn[standard]>=0.27.0",
    "sqlalchemy[asyncio]>=2.0.25",
    "asyncpg>=0.29.0",
    "aiosqlite>=0.19.0",
    "pydantic>=2.5.0",
    "pydantic-settings>=2.1.0",
    "python-dotenv>=1.0.0",
    "httpx>=0.26.0",
    "aiofiles>=23.2.1",
    "python-docx>=1.1.0",
    "lxml>=5.1.0",
    "qrcode>=7.4.2",
    "Pillow>=10.2.0",
    "PyYAML>=6.0.1",
    "rich>=13.7.0",
]

setup(
    name="surat-rekomendasi-engine",
    version="1.0.0",
    description="Generation, numbering and verification of scholarship recommendation letters",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Surat Rekomendasi Team",
    license="MIT",
    package_dir={"": "backend"},
    packages=find_namespace_packages("backend", include=["app", "app.*"], exclude=["*.__pycache__"]),
    package_data={"app.config": ["templates.yml"]},
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "faker>=22.0.0",
            "black>=24.1.0",
            "isort>=5.13.0",
            "mypy>=1.8.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "surat-engine=app.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Framework :: FastAPI",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business",
        "Topic :: Text Processing :: Markup :: XML",
    ],
    keywords="docx template letter numbering verification qrcode fastapi",
)
