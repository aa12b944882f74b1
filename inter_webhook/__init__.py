"""
Inbound webhook receiver obtaining Banco Inter OAuth2 tokens over mTLS.
"""

__version__ = "1.0.0"
