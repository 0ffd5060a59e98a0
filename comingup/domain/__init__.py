"""Domain logic built on parsed occurrences."""
