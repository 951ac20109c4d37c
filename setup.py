"""
Setup script for A/B Learning
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="ab-learning",
    version="1.0.0",
    description="Self-tuning variant selection with Thompson sampling and evolutionary breeding",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["ab_learning", "ab_learning.*"]),
    include_package_data=True,
    install_requires=[
        "numpy>=1.21.0",
        "requests>=2.28.0",
        "urllib3>=1.26.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
