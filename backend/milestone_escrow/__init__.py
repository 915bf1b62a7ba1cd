"""
Milestone Escrow - milestone lifecycle and escrow-release workflow service.
"""

__version__ = "0.1.0"
