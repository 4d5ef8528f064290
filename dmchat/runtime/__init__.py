"""Thread session runtime: key events, refresh scheduling and pending sends."""
