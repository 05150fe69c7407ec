"""
Azure collection templates.

Every module here exposes `get_templates()`; the composer discovers them by
walking this package.
"""
