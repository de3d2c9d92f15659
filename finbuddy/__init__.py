"""
FinBuddy - Source Package

A personal-finance tracker with gamified achievements and AI-assisted
advisors for Indian households.

DESIGN PRINCIPLES:
1. Every read and write is scoped to the signed-in user
2. Numbers are computed locally, reasoning is delegated to the LLM
3. Failures are terminal for the request that caused them
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "FinBuddy Team"
