"""Generation, rendering and assembly services."""
