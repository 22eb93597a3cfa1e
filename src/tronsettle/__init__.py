"""
tronsettle: TRON transaction construction and settlement
"""

__version__ = '0.1.0'
