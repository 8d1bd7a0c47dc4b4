"""MCP Resources describing what can be tracked and requested."""

from __future__ import annotations

import json

from fastmcp import FastMCP

from healthtrack.domains.health.domain_logic.metric_models import (
    ALLOWED_DAYS,
    BLOOD_PRESSURE,
    BLOOD_PRESSURE_UNIT,
    DEFAULT_DAYS,
    DEFAULT_EXPORT_FORMAT,
    EXPORT_FORMATS,
    METRIC_TYPES,
    VALUE_RANGES,
)


def build_metric_catalog() -> dict:
    return {
        "metric_types": [
            {
                "name": name,
                "min": VALUE_RANGES[name][0],
                "max": VALUE_RANGES[name][1],
                "composite": name == BLOOD_PRESSURE,
                "default_unit": BLOOD_PRESSURE_UNIT if name == BLOOD_PRESSURE else None,
            }
            for name in METRIC_TYPES
        ],
        "allowed_days": list(ALLOWED_DAYS),
        "default_days": DEFAULT_DAYS,
        "export_formats": list(EXPORT_FORMATS),
        "default_export_format": DEFAULT_EXPORT_FORMAT,
    }


def register_metric_catalog_resources(mcp: FastMCP) -> None:
    """Register metric discovery resources on the MCP server."""

    @mcp.resource("healthtrack://metrics/catalog")
    def metric_catalog_resource() -> str:
        """Trackable metric types, accepted value ranges, windows and export formats."""
        return json.dumps(build_metric_catalog(), indent=2)
