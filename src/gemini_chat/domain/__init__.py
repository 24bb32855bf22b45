"""Domain layer: entities, states, ports and the observable state cell."""
