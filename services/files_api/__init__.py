"""Audio Files API - HTTP service.

FastAPI service issuing presigned upload/playback URLs for audio files,
with JWT bearer authentication and an audit record per issuance.
"""

__all__: list[str] = []
