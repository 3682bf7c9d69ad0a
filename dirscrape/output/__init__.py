"""Record storage, table serialization and run persistence."""
