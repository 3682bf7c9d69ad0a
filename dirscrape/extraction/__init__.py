"""Schema discovery and record extraction for detail pages."""
