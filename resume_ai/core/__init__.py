"""
Core modules for resume-ai.

This package contains cost estimation, retry and model fallback,
usage tracking and résumé/role matching.
"""
