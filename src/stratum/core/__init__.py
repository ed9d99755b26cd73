"""Core engine for Stratum: composition, schemas, and document storage."""
