"""
FastAPI RESTful API for PageWatch.

This module provides a REST API for:
- Monitored URL management and on-demand checks
- Change history and diffs
- Search, reports and exports
- API key-based authentication with rate limiting
"""
