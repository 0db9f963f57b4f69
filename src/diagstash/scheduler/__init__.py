"""Timer-driven scheduling using pure asyncio.

- Debouncer: stabilizes a changing value after a quiet period
- AutosaveScheduler: saves the settled editor tuple via the repository
"""
