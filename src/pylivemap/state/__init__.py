"""State layer.

Single writers for the view's mutable state: displayed markers (fed by the
position stream) and the region overlay (fed by the region service). Every
change leaves this package as a typed event on the view's event channel.
"""
