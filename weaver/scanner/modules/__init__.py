"""Weaver audit modules."""
