"""Host boundary: call context, clocks, events."""
