"""Core infrastructure shared by the comingup engine (time zones, config, logging)."""
