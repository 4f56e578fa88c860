"""YouTube audio to transcript pipeline.

Composes four services behind one orchestrator:

- rate limiting per client identity (Redis or in-memory sliding window)
- transcript caching (Redis or in-memory, 24h TTL)
- audio extraction through the ``yt-dlp`` executable
- speech-to-text through an OpenAI-compatible transcription API
"""

__version__ = "1.0.0"
