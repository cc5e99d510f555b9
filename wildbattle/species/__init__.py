"""Wild species master data (id, display name, base HP)."""
