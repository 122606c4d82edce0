"""Wire and text encoders."""
