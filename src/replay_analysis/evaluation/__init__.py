"""Position scoring, momentum detection and battle summaries."""
