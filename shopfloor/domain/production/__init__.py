"""Production scheduling domain: items, runs, station dependencies and working time."""
