"""Angle, ellipse, data and metric helpers."""
