"""aiohttp web API for caltimeline."""
