"""Party AI - tactical decision engine for AI-controlled party members."""

__version__ = "0.1.0"
