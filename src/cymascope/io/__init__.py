"""Serialization of frequency tracks and field buffers."""
