"""dirscrape: dynamic-schema scraper for business directory listings.

Detail pages are probed with a declarative rule table, the fields each page
exposes are merged into one run-scoped schema, and every business becomes a
row of a rectangular CSV table.
"""

__version__ = "0.1.0"
