"""Account-level prerequisites: discovery, regions and cross-account access."""
