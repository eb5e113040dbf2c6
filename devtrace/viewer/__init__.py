"""
Log viewer - the reporting server launched alongside the dev server.

Serves the unified log as an HTML timeline and JSON, plus the published
screenshots. Runs in its own process via ``python -m devtrace.viewer``.
"""
