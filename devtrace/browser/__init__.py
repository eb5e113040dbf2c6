"""
Browser monitoring for devtrace.

Provides the Playwright-backed browser session with:
- An escalating launch chain (installed Chrome, bundled Chromium, install then retry)
- Console, page error, network and navigation capture into the unified log
- Deduplicated screenshots published to the log viewer
"""
