"""Playwright-based page source for JavaScript-rendered directories.

Pages are rendered in Chromium and snapshotted to HTML, which is parsed
with lxml. No live browser reference leaves this package.
"""

from dirscrape.driver.playwright_source.playwright_source import (
    PlaywrightPageSource,
)

__all__ = ["PlaywrightPageSource"]
