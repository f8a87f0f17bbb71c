"""
Setup script for coursepilot-core.

coursepilot turns an ordered list of course videos into coherent,
duration-balanced modules and a dated study plan:

1. Structuring - TF-IDF features, hybrid clustering, duration balancing
2. Planning - Multi-factor session grouping with spaced reviews
3. Adapting - Preference learning from ratings and manual edits

The 'coursepilot' command is the entry point.
"""

from setuptools import find_packages, setup

setup(
    name="coursepilot-core",
    version="0.1.0",
    description="Course structuring and study planning core for video courses",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="coursepilot",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Numerics & clustering
        "numpy>=1.24.0",
        "scikit-learn>=1.2.0",
        "scipy>=1.10.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-bdd>=6.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "coursepilot=coursepilot.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="course-planning clustering spaced-repetition study-plan education",
)
