"""
Pipeline stages for the access control engine.

- extract: Padding and cropping of plate regions for recognition
"""

from .extract import RegionExtractor, crop_region, expand_region

__all__ = ["RegionExtractor", "crop_region", "expand_region"]
