"""Recipe view counting.

Learn: views are counted in two layers:
1. throttle — the client carries a signed map of recipe id → last counted
   time, so the same visitor is counted at most once per 30 minutes
2. buffer — accepted views are increments in process memory, flushed to
   the recipes table in batches (one UPDATE per recipe per flush)

A popularity counter does not need perfect accuracy: a crash loses at
most one flush interval of views, and views buffered on one instance are
invisible to the others until flushed.
"""
