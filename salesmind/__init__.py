"""SalesMind backend: sales-call recording ingestion and AI feedback."""
