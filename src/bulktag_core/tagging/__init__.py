"""Tag matching and tag add/remove runs."""
