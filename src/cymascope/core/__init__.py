"""Numerical core of the cymatic field: layouts, coloring, wave update, frequency extraction."""
