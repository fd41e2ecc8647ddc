"""site_ingest.parser: HTML to document extraction."""
