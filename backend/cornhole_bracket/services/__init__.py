"""
Services Layer

- Pure engine: bracket_topology, bye_resolver, advancement (advance/retract),
  tournament_status. Work on any match-like objects, no I/O.
- Session-bound: match_state, bracket_service, advancement session helpers.
  Accept a Session and explicit tournament id; never see HTTP objects.
"""
