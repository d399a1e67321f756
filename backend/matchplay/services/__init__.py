"""
Bracket Engine Services

Single-elimination engine logic that:
- Builds bracket topology from capacity (pure)
- Seeds entrants into round 1 (pure)
- Advances winners and guards progression (through the match store)
- Reconciles incrementally generated rounds
- Does NOT depend on HTTP request/response objects
"""
