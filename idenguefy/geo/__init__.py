"""Geographic math, cluster model and live location."""
