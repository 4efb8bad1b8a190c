"""
Schemas for the yazi bridge.

- events.py: payloads read from yazi's event stream (`ya sub`)
- operations/: values handed between services (snapshots, results, plans)
"""
