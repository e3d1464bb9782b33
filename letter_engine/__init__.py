"""Official-letter explanation engine.

This package focuses on:
- capturing letter pages (camera, image files, PDFs) as JPEG data URLs
- sending them to a hosted Gemini model for structured extraction
- keeping the analysed letters in a local workspace (history.json)
- presenting summaries, agenda, insights, chat and calendar exports

Subscription, biometric unlock and family vault sharing are out of scope.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
