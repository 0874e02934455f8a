"""Setup script for k8s-rollout-e2e package."""

from setuptools import setup, find_packages

setup(
    name="k8s-rollout-e2e",
    version="1.0.0",
    description="Kubernetes rollout, PDB and placement e2e suite with a rollout-policy monitor",
    author="Platform Reliability Team",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    package_data={
        "rollout_e2e": ["manifests/*.yaml"],
    },
    install_requires=[
        "click>=8.0.0",
        "pyyaml>=6.0",
        "colorama>=0.4.6",
        "tabulate>=0.9.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "rollout-e2e=rollout_e2e.cli:cli",
        ],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Testing",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
