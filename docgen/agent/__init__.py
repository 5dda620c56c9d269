"""Planner-driven crawl of API documentation sites."""

from docgen.agent.crawl_loop import CrawlLoop, CrawlState, crawl_site

__all__ = ["CrawlLoop", "CrawlState", "crawl_site"]
