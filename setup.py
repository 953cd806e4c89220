"""
Setup script for mastery-engine.

Mastery Engine is the adaptive core of a children's practice app:

1. Learner Model - per-topic Bayesian Knowledge Tracing fused with
   teacher evaluations
2. Quiz Composition - weak/learning/mastered mixing, retention probes,
   review mode after long breaks
3. Session Monitor - fatigue and frustration detection that ends a
   quiz early

Question content, UI, and authentication live in the host application.
"""

from setuptools import find_namespace_packages, setup

setup(
    name="mastery-engine",
    version="1.0.0",
    description="Adaptive mastery tracking and quiz composition engine",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Right Learning",
    packages=find_namespace_packages(include=["src", "src.*"]),
    py_modules=["config"],
    python_requires=">=3.11",
    install_requires=[
        # Database
        "sqlalchemy[asyncio]>=2.0.0",
        "aiosqlite>=0.19.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
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
        "postgres": [
            "asyncpg>=0.29.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
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
    keywords="learning bayesian-knowledge-tracing spaced-repetition adaptive-quiz education",
)
