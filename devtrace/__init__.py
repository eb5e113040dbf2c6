"""
devtrace - unified logs, browser events and screenshots for local web development.
"""
__version__ = "0.1.0"
