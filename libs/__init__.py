# =============================================================================
# Asset Lineage Shared Libraries
# =============================================================================
# This package contains shared libraries for the asset metadata cache and
# lineage graph. See individual modules for detailed documentation.
# =============================================================================

"""
Asset lineage shared libraries.

Sub-packages and modules:
- models: Pydantic data models and settings
- matching: flat-file dataset to datasource matching
- s3_utils: object key helpers
"""

__version__ = "0.1.0"
