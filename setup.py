"""
Setup configuration for avd-rollout
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8')

setup(
    name="avd-rollout",
    version="1.0.0",
    author="Platform Engineering",
    author_email="",
    description="Automated Azure Virtual Desktop host pool image rollout",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Systems Administration",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    install_requires=[
        "PyYAML>=6.0",
        "jsonschema>=4.17.0",
        "azure-identity>=1.12.0",
        "azure-mgmt-resource>=21.0.0,<24",
        "azure-mgmt-desktopvirtualization>=1.0.0",
        "azure-mgmt-compute>=29.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.2.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "avd-rollout=avdrollout.cli:main",
        ],
    },
    include_package_data=True,
    package_data={
        "avdrollout": [
            "schemas/*.yaml",
        ],
    },
    zip_safe=False,
    keywords=[
        "azure",
        "azure-virtual-desktop",
        "arm-templates",
        "host-pool",
        "image-rollout",
    ],
)
