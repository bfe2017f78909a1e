"""PySide6 presentation layer.

Importing this package requires PySide6; the orchestration core does not.
"""
