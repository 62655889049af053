"""MAPSYNC web application: settings, REST and WebSocket surface."""
