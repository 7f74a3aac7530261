"""Test package marker so pytest can address ``tests.unit`` and ``tests.e2e``.

The module exposes no symbols and must stay side-effect free.
"""
