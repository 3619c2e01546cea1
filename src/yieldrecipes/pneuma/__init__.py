"""
Pneuma - Remote API layer.

HTTP client, the three API flavours (Yields, StakeKit, Perps), their
wire models, and the transaction pipeline that drives action steps
through prepare, sign, submit and confirm.

Uses httpx for transport.
"""
