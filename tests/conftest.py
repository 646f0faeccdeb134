"""Shared test fixtures and configuration."""

from __future__ import annotations

from collections.abc import Iterator
import logging

import pytest

from docs_search_index.config import Settings
from docs_search_index.observability.metrics import set_metrics_enabled


# Environment variables Settings reads; cleared so a developer's shell or .env cannot leak in.
SETTINGS_ENV_VARS = (
    "SEARCH_MAX_RESULTS",
    "PREFIX_ENABLED",
    "STRICT_PHRASES",
    "PHRASE_BONUS",
    "SNIPPET_LENGTH",
    "LOG_LEVEL",
    "LOG_JSON",
    "METRICS_ENABLED",
)


@pytest.fixture(autouse=True)
def clean_settings_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Iterator[None]:
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Settings looks for .env in the working directory.
    monkeypatch.chdir(tmp_path)
    set_metrics_enabled(True)
    yield
    set_metrics_enabled(True)


@pytest.fixture(autouse=True)
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def rotation_records() -> list[dict[str, str]]:
    """Two method records from a rotations library reference page."""
    return [
        {
            "location": "lib/library/#ReferenceFrameRotations.inv_quat",
            "page": "Library",
            "title": "Quaternion Inversion",
            "category": "method",
            "text": "compute inverse quaternion",
        },
        {
            "location": "lib/library/#ReferenceFrameRotations.orthonormalize",
            "page": "Library",
            "title": "DCM Orthonormalization",
            "category": "method",
            "text": "gram schmidt orthonormalize",
        },
    ]


@pytest.fixture
def docs_records() -> list[dict[str, str]]:
    """A small mixed-category corpus in generator order."""
    return [
        {"location": "#", "page": "Home", "title": "Home", "category": "page", "text": ""},
        {
            "location": "#Installation-1",
            "page": "Home",
            "title": "Installation",
            "category": "section",
            "text": 'This package can be installed using:julia> Pkg.add("ReferenceFrameRotations")',
        },
        {
            "location": "man/quaternions/#Quaternions-1",
            "page": "Quaternions",
            "title": "Quaternions",
            "category": "section",
            "text": "Quaternions are a compact representation of 3D rotations. The quaternion "
            "kinematics describe how the attitude evolves over time.",
        },
        {
            "location": "man/dcm/#Direction-Cosine-Matrices-1",
            "page": "Direction Cosine Matrices",
            "title": "Direction Cosine Matrices",
            "category": "section",
            "text": "A direction cosine matrix (DCM) rotates a reference frame. Use dcm_to_quat to "
            "convert a DCM into a quaternion.",
        },
        {
            "location": "lib/library/#ReferenceFrameRotations.dcm_to_quat",
            "page": "Library",
            "title": "ReferenceFrameRotations.dcm_to_quat",
            "category": "function",
            "text": "Convert the direction cosine matrix into a quaternion.",
        },
        {
            "location": "lib/library/#ReferenceFrameRotations.Quaternion",
            "page": "Library",
            "title": "ReferenceFrameRotations.Quaternion",
            "category": "type",
            "text": "The definition of the quaternion type.",
        },
    ]


@pytest.fixture
def documenter_payload() -> str:
    """Search payload as written by the documentation generator (note the trailing comma)."""
    return """var documenterSearchIndex = {"docs": [

{
    "location": "#",
    "page": "Home",
    "title": "Home",
    "category": "page",
    "text": ""
},

{
    "location": "#Requirements-1",
    "page": "Home",
    "title": "Requirements",
    "category": "section",
    "text": "Julia >= 0.7\\nStaticArrays >= 0.8.3"
},

{
    "location": "man/euler_angles/#Euler-Angles-1",
    "page": "Euler Angles",
    "title": "Euler Angles",
    "category": "section",
    "text": "Euler angles describe a rotation sequence, e.g. [a, b, c], around three axes."
},

]}
"""
