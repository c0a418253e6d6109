"""Object record services: identity, quota, dedup links, access grants."""
