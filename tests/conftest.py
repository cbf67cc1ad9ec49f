"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Ensure src directory is in Python path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def palette_tree():
    """Token tree with a promoted group, a themed override and a plain group."""
    return {
        "#brand": {
            "default": "#3366ff",
            "600": "#1d4ed8",
        },
        "surface": {
            "default": "#ffffff",
            "--dark-default": "#0b0b0b",
        },
        "radius": "4px",
    }


@pytest.fixture
def generated_css():
    """Stylesheet in the shape the collector renders."""
    return (
        ":root {\n"
        "  --brand: #3366ff;\n"
        "  --surface: #ffffff;\n"
        "}\n"
        "\n"
        ".dark {\n"
        "  --surface: #0b0b0b;\n"
        "}\n"
        "\n"
        "@theme {\n"
        "  --brand: var(--brand);\n"
        "  --surface: var(--surface);\n"
        "  --radius: 4px;\n"
        "}\n"
    )
