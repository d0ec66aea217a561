"""Site Risk Audit: inspection lifecycle and photo-analysis orchestration."""

__version__ = "0.3.0"
