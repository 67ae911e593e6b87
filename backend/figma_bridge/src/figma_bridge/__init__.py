"""React-to-Figma bridge: capture a running app, describe it as a design spec, and rebuild it as design nodes."""

__version__ = "0.1.0"
