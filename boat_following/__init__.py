"""Detection of seabird boat-following events from GPS tracks.

This package provides modular building blocks to prepare raw GPS fixes,
resample them onto a regular grid, attach behavioural states, segment
boat-relevant states into events, validate them by trajectory shape, and
summarise the accepted events.
"""
