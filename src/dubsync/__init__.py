"""
dubsync - AI content synchronization for educational video.

- Translated, timestamped transcripts generated from a source video
- Per-segment dubbed audio synthesized from those transcripts
- Store-backed caching per (resource, language)
- A playback synchronizer that keeps dub clips in step with a muted video
"""

__version__ = "0.1.0"
