"""Pure domain core: commands, DTOs, clock, and cost arithmetic."""
