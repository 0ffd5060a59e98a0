"""Calendar feed parsing: unfolding, fields, records, recurrence and overrides."""
