"""Duplicate-aware review comment posting: diff anchoring, ignore markers,
discussion matching and MR context summaries."""
