"""Web3 funnel analytics: browser-side event collector and ingest backend."""
