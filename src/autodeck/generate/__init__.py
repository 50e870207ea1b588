"""
Playlist Module: Track records, playlist editing and tempo-proximity ordering.
"""

__all__ = ["playlist", "ordering"]
