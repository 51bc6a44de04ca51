"""Record import: JSON arrays of observations validated before merging."""
