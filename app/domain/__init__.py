"""
Domain layer containing core business logic and domain services.

Submodules:
- access: Visibility and moderation rules for streams and recordings.
- live: Stream sessions and the recording pipeline.
- utils: Domain-specific utilities (ID generation, operation results).
"""
