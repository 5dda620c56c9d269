"""docgen - crawl API documentation sites into a searchable knowledge base."""

__version__ = "1.0.0"
