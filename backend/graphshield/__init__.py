"""GraphShield – graph-based money-muling detection."""
