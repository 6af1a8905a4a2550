"""Web search assistant — Gemini answers grounded by Google Search, with cited sources."""
