"""Account, device and session backend for Smile Movies."""
