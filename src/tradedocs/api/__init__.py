"""HTTP surface for the document engine."""
