"""
IrtzaLink - link-in-bio profiles with a follow graph
"""

__version__ = "1.0.0"
