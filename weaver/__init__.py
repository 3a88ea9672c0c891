"""
Weaver - Web Application Security Scanner Core
Version: 0.4.0

Crawl and audit-orchestration core with:
- Async spider with scope, redundancy and redirect control
- Audit queue dispatching pages to applicable modules
- Pause/resume from a controlling thread
- Pluggable modules, plugins and reports
"""

__version__ = '0.4.0'
