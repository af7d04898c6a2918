"""State layer.

Owns the per-device mutable model that survives between polls: the pellet
inventory estimate and the fault state. Both decide *whether* something
changed; the reconciliation loop in :mod:`pyhaassohn.device` performs the
resulting side effects.
"""
