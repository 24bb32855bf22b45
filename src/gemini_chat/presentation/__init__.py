"""HTTP presentation layer: issues intents to the controllers and renders their state."""
