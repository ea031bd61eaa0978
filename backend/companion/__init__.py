"""ACT companion - guided self-reflection sessions with AI-derived summaries."""

__version__ = "1.0.0"
