"""Upstream score sources."""
