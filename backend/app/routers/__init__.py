"""Candidate Vetting Engine - API Routers"""
from .committee import router as committee_router
from .vetting import router as vetting_router

__all__ = [
    "committee_router",
    "vetting_router",
]
