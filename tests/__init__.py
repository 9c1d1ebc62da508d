"""Test package marker.

Marks ``tests`` as a package so pytest resolves ``tests.unit`` modules and the
shared fixtures in ``tests/conftest.py`` consistently. Importing it has no
side effects.
"""
