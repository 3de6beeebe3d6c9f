"""HTTP value types — Request, Response, and their multi-value mappings."""
