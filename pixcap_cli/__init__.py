"""
pixcap-cli: discovers 3D icon packs on PixCap and downloads their models.
"""

__version__ = "0.1.0"
