"""State layer.

This package holds the presence fusion core: the per-room measurement
store, room arbitration, the presence state machine and the device
lifecycle. It never talks to a transport directly.
"""
