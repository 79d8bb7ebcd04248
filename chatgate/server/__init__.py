"""HTTP surface for chatgate."""
