"""Scene parsing, segment producers and the container encoder."""
