"""Weaver reports."""
