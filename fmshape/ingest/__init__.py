"""Front-matter ingestion from Markdown sources."""
