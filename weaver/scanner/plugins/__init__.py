"""Weaver plugins."""
