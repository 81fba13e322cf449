"""
workforce_core.api

HTTP API package (FastAPI).
"""

# Package marker.
