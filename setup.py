import os
from setuptools import setup, find_packages

setup(
    name="whisperaccel",
    version="0.4.0",
    description="whisperaccel: hardware detection and compute-backend selection for whisper transcription",
    long_description=open("README.md").read() if os.path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="whisperaccel",
    packages=find_packages(include=["whisperaccel", "whisperaccel.*"]),
    install_requires=[
        "psutil>=5.9.0",
        "click>=8.0.0",
        "nvidia-ml-py>=12.535.0",
        "py-cpuinfo>=9.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "whisperaccel=whisperaccel.cli:main",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
