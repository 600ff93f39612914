"""Timed composition renderer: assets, word-reveal subtitles and an audio visualizer to video."""

__version__ = "0.1.0"
