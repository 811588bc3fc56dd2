from __future__ import annotations

from pathlib import Path

from setuptools import find_namespace_packages, setup

_HERE = Path(__file__).resolve().parent


def _long_description() -> str:
    readme = _HERE / "README.md"
    return readme.read_text(encoding="utf-8") if readme.exists() else ""


setup(
    name="werner-gravity",
    version="0.1.0",
    description=(
        "Exact polyhedral gravity (Werner & Scheeres) and solid-angle "
        "containment for closed triangle meshes."
    ),
    long_description=_long_description(),
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    packages=find_namespace_packages(
        include=[
            "core",
            "core.*",
            "geometry",
            "geometry.*",
            "runtime",
            "runtime.*",
            "parameters",
            "parameters.*",
            "werner_gravity",
            "werner_gravity.*",
        ]
    ),
    install_requires=[
        "numpy",
        "scipy",
        "PyYAML",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
