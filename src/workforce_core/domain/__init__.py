"""
workforce_core.domain

Domain records (principals, payments) and their mapping to/from stored documents.
"""

# Package marker.
