"""Upstream access, normalization, session and playback services."""
