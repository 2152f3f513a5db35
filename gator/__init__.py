"""RSS feed aggregator library: follow feeds, scrape posts into SQLite and browse them."""

__version__ = "0.1.0"
__all__ = ["commands", "config", "database", "feed", "models"]