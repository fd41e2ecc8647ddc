"""site_ingest.crawler: fetcher, robots policy and breadth-first traversal."""
