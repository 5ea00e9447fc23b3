"""
Tube Service - video sharing backend
"""
__version__ = "1.0.0"
