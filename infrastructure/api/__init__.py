"""
Infrastructure constructs for the API Gateway REST API.
"""

from infrastructure.api.constructs import SurfaceRestApi, to_api_json_schema

__all__ = [
    "SurfaceRestApi",
    "to_api_json_schema",
]
