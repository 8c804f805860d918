#!/usr/bin/env python3
"""
Setup configuration for song-locker
A personal audio library with favorites, playlists and playback
"""

from pathlib import Path

from setuptools import setup, find_packages

# Read README for long description (optional in source checkouts)
readme = Path(__file__).parent / "README.md"
long_description = readme.read_text(encoding="utf-8") if readme.exists() else ""

# Core requirements (always installed)
core_requirements = [
    "pyyaml>=6.0.1",
    "tqdm>=4.66.1",
    "click>=8.1.7",
    "rich-click>=1.7.0",
    "pygame>=2.1.3",
    "mutagen>=1.47.0",
]

setup(
    name="song-locker",
    version="0.1.0",
    author="song-locker Team",
    description="Keep imported audio files, favorites and playlists consistent, and play them",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["song_locker", "song_locker.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio :: Players",
    ],
    python_requires=">=3.10",
    install_requires=core_requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-mock>=3.12.0",
            "black>=23.11.0",
            "flake8>=6.1.0",
            "mypy>=1.7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "song-locker=song_locker.cli:main",
        ],
    },
    keywords="music library playlist favorites audio player cli",
)
