"""Provider dispatch: clients, retries and the fallback chain."""
