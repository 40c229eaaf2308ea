"""Parse .eml headers, extract public IPv4 addresses and geolocate them."""
