"""Core engine components: agent loop, scratchpad, context, cache, history."""
