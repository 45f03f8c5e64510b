"""Content digests for stored and downloaded artifacts."""
