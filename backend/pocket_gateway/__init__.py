"""Pocket Gateway: one upstream broker session, fanned out to many clients."""
