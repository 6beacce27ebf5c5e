"""
Watcher package: change detection and search engine for monitored pages.

This package contains:
- Content normalization and fingerprinting
- Snapshot and bounded change history stores
- Change detection
- Positional diff rendering
- Search, ranking and report building
- Alerting, scheduling and the service facade
"""

__version__ = "1.0.4"
__author__ = "PageWatch"
