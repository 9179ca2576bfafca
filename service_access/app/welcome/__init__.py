"""
Welcome gate package.
"""

from .gate import WelcomeGate

__all__ = ["WelcomeGate"]
