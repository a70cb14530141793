"""Library Catalog - helper utilities

- validators.py: text and number checks used before database writes
- ui_helpers.py: CLI output modes (plain, json, rich)
"""
