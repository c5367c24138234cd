"""Overlay widgets drawn above the active tab."""
